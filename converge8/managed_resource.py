"""
Helper objects to represent the managed resource under test and the naming
contract its controller uses for the resources it owns
"""

# Standard
from dataclasses import dataclass
from typing import Optional

# Local
from . import constants
from .utils import nested_get


@dataclass(frozen=True)
class ResourceIdentity:
    """The {name, namespace} key of a managed resource instance"""

    name: str
    namespace: str

    def __str__(self):
        return f"{self.namespace}/{self.name}"


## Naming contract #############################################################


def automation_config_secret_name(identity: ResourceIdentity) -> str:
    """Name of the secret the controller writes the automation config into"""
    return f"{identity.name}{constants.AUTOMATION_CONFIG_SECRET_SUFFIX}"


def service_name(identity: ResourceIdentity) -> str:
    """Name of the headless service fronting the StatefulSet"""
    return f"{identity.name}{constants.SERVICE_SUFFIX}"


def pod_name(identity: ResourceIdentity, index: int) -> str:
    """Name of the StatefulSet member with the given ordinal"""
    return f"{identity.name}-{index}"


def mongo_uri(identity: ResourceIdentity, members: int) -> str:
    """The connection string the controller reports once all members are up"""
    hosts = [
        "{}.{}.{}.{}:{}".format(  # pylint: disable=consider-using-f-string
            pod_name(identity, i),
            service_name(identity),
            identity.namespace,
            constants.CLUSTER_DOMAIN,
            constants.DEFAULT_MONGOD_PORT,
        )
        for i in range(members)
    ]
    return f"mongodb://{','.join(hosts)}"


## Managed resource ############################################################


class ManagedResource:
    """Basic struct to represent the managed resource's manifest. Only the spec
    is meant to be mutated, and only through the optimistic updater.
    """

    def __init__(self, definition: dict):
        self.definition = definition
        assert self.kind is not None, "No kind found"
        assert self.api_version is not None, "No apiVersion found"
        assert self.name is not None, "No name found"

    @property
    def kind(self) -> Optional[str]:
        return self.definition.get("kind")

    @property
    def api_version(self) -> Optional[str]:
        return self.definition.get("apiVersion")

    @property
    def metadata(self) -> dict:
        return self.definition.setdefault("metadata", {})

    @property
    def name(self) -> Optional[str]:
        return self.metadata.get("name")

    @property
    def namespace(self) -> Optional[str]:
        return self.metadata.get("namespace")

    @property
    def uid(self) -> Optional[str]:
        return self.metadata.get("uid")

    @property
    def resource_version(self) -> Optional[str]:
        return self.metadata.get("resourceVersion")

    @property
    def identity(self) -> ResourceIdentity:
        return ResourceIdentity(name=self.name, namespace=self.namespace)

    @property
    def spec(self) -> dict:
        return self.definition.setdefault("spec", {})

    @property
    def status(self) -> dict:
        return self.definition.get("status") or {}

    @property
    def members(self) -> int:
        return self.spec.get("members", 0)

    @members.setter
    def members(self, members: int):
        self.spec["members"] = members

    @property
    def version(self) -> Optional[str]:
        return self.spec.get("version")

    @version.setter
    def version(self, version: str):
        self.spec["version"] = version

    @property
    def phase(self) -> Optional[str]:
        return nested_get(self.status, constants.STATUS_PHASE_KEY)

    def mongo_uri(self) -> str:
        return mongo_uri(self.identity, self.members)

    def __str__(self):
        return f"{self.api_version}/{self.kind}/{self.namespace}/{self.name}"

    def __repr__(self):
        return str(self)


def make_owner_reference(owner: ManagedResource, controller: bool = True) -> dict:
    """Make the controller reference the managed resource's controller stamps
    onto the children it creates

    Args:
        owner:  ManagedResource
            The owning resource as read from the store (uid must be set)
        controller:  bool
            Whether the reference marks the owner as the managing controller

    Returns:
        owner_reference:  dict
            The dict entry for the `metadata.ownerReferences` entry of the owned
            object
    """
    return {
        "apiVersion": owner.api_version,
        "kind": owner.kind,
        "name": owner.name,
        "uid": owner.uid,
        "controller": controller,
        "blockOwnerDeletion": True,
    }
