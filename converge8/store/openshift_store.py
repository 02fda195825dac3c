"""
This Store is responsible for delegating cluster operations to the openshift
library. It is the one that will be used when checks run against a live
cluster, either from inside the cluster or from a workstation with a
kubeconfig.
"""
# Standard
from typing import Optional

# Third Party
from openshift.dynamic import DynamicClient
from openshift.dynamic.exceptions import ConflictError as ClientConflictError
from openshift.dynamic.exceptions import (
    DynamicApiError,
    ForbiddenError,
    NotFoundError as ClientNotFoundError,
    ResourceNotFoundError,
    ResourceNotUniqueError,
)
from openshift.dynamic.resource import Resource
import kubernetes
import urllib3

# First Party
import alog

# Local
from ..exceptions import (
    ClusterError,
    ConflictError,
    NotFoundError,
    TransientError,
    assert_cluster,
)
from .base import CLEANUP_HOOK, StoreBase

log = alog.use_channel("OSFTS")


class OpenshiftStore(StoreBase):
    """This Store uses the openshift DynamicClient to interact with the
    cluster
    """

    def __init__(self, client: Optional[DynamicClient] = None):
        """
        Args:
            client:  Optional[DynamicClient]
                A preconfigured client. If not given, one is created lazily from
                the in-cluster config or the local kubeconfig.
        """
        super().__init__()
        self._client = client

    @property
    def client(self) -> DynamicClient:
        """Lazy property access to the client"""
        if self._client is None:
            self._client = self._setup_client()
        return self._client

    def get_object_current_state(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ):
        resources = self._get_resource_handle(kind, api_version)
        if not resources:
            return True, None

        try:
            resource = resources.get(name=name, namespace=namespace)
        except ClientNotFoundError:
            log.debug(
                "No object named [%s/%s] found in namespace [%s]", kind, name, namespace
            )
            return True, None
        except ForbiddenError:
            log.debug(
                "Fetching objects of kind [%s] forbidden in namespace [%s]",
                kind,
                namespace,
            )
            return False, None
        except (DynamicApiError, urllib3.exceptions.HTTPError) as err:
            log.debug("Failed to fetch [%s/%s] in [%s]: %s", kind, name, namespace, err)
            return False, None

        return True, resource.to_dict()

    @alog.logged_function(log.debug)
    def create(self, resource_definition, cleanup_hook: Optional[CLEANUP_HOOK] = None):
        resource_handle, name, namespace = self._handle_for(resource_definition)
        log.debug2(
            "Attempting to create [%s/%s] in %s", resource_handle.kind, name, namespace
        )
        try:
            created = resource_handle.create(
                body=resource_definition, namespace=namespace
            ).to_dict()
        except ClientConflictError as err:
            raise ClusterError(
                f"{resource_handle.kind} {namespace}/{name} already exists"
            ) from err
        except urllib3.exceptions.HTTPError as err:
            raise TransientError(str(err)) from err
        if cleanup_hook is not None:
            self.register_cleanup(
                f"{resource_handle.kind} {namespace}/{name}", cleanup_hook
            )
        return created

    @alog.logged_function(log.debug)
    def update(self, resource_definition):
        resource_handle, name, namespace = self._handle_for(resource_definition)
        log.debug2(
            "Attempting to replace [%s/%s] in %s", resource_handle.kind, name, namespace
        )
        try:
            return resource_handle.replace(
                body=resource_definition, name=name, namespace=namespace
            ).to_dict()
        except ClientConflictError as err:
            raise ConflictError(err.summary()) from err
        except ClientNotFoundError as err:
            raise NotFoundError(
                kind=resource_handle.kind, name=name, namespace=namespace
            ) from err
        except urllib3.exceptions.HTTPError as err:
            raise TransientError(str(err)) from err
        except DynamicApiError as err:
            raise ClusterError(
                f"Failed to update {resource_handle.kind} {namespace}/{name}: "
                f"{err.summary()}"
            ) from err

    @alog.logged_function(log.debug)
    def delete(self, kind, name, namespace=None, api_version=None):
        resource_handle = self._get_resource_handle(kind, api_version)
        assert_cluster(
            resource_handle,
            f"Failed to fetch resource handle for {namespace}/{api_version}/{kind}",
        )
        log.debug2("Attempting to delete [%s/%s] from %s", kind, name, namespace)
        try:
            resource_handle.delete(name=name, namespace=namespace)
        except ClientNotFoundError as err:
            raise NotFoundError(kind=kind, name=name, namespace=namespace) from err
        except urllib3.exceptions.HTTPError as err:
            raise TransientError(str(err)) from err

    ## Implementation Helpers ##################################################

    @staticmethod
    def _setup_client():
        """Create a DynamicClient that will work based on where the checks are
        running
        """
        try:
            log.debug2("Running with in-cluster config")
            kube_config = kubernetes.client.Configuration()
            kubernetes.config.load_incluster_config(client_configuration=kube_config)
            api_client = kubernetes.client.ApiClient(kube_config)
            return DynamicClient(api_client)
        except kubernetes.config.ConfigException:
            log.debug2("Running with out-of-cluster config")
            return DynamicClient(kubernetes.config.new_client_from_config())

    def _get_resource_handle(
        self, kind: str, api_version: Optional[str]
    ) -> Optional[Resource]:
        """Get the openshift resource handle for a specified kind and api_version"""
        try:
            return self.client.resources.get(kind=kind, api_version=api_version)
        except (ResourceNotFoundError, ResourceNotUniqueError):
            log.debug(
                "No resource kind [%s] found or multiple kinds matching request found",
                kind,
            )
        return None

    def _handle_for(self, resource_definition: dict):
        api_version = resource_definition.get("apiVersion")
        kind = resource_definition.get("kind")
        metadata = resource_definition.get("metadata", {})
        name = metadata.get("name")
        namespace = metadata.get("namespace")
        assert None not in [kind, name], "Cannot write resource without kind or name"
        resource_handle = self._get_resource_handle(kind, api_version)
        assert_cluster(
            resource_handle,
            f"Failed to fetch resource handle for {namespace}/{api_version}/{kind}",
        )
        return resource_handle, name, namespace
