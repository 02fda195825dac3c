"""
Typed accessors that each retrieve a single logical observation of the managed
resource or one of its children from the store
"""

# Standard
from typing import Optional
import base64
import binascii
import json

# First Party
import alog

# Local
from . import constants
from .exceptions import (
    MismatchError,
    NotFoundError,
    SecretKeyMissingError,
    TransientError,
)
from .managed_resource import (
    ManagedResource,
    ResourceIdentity,
    automation_config_secret_name,
)
from .store import StoreBase

log = alog.use_channel("FETCH")


class Fetcher:
    """A Fetcher reads the resources that belong to one managed resource
    identity. It holds no cached state; every call is a fresh read.
    """

    def __init__(
        self,
        store: StoreBase,
        identity: ResourceIdentity,
        managed_api_version: str = constants.MANAGED_API_VERSION,
    ):
        self.store = store
        self.identity = identity
        self.managed_api_version = managed_api_version

    ## Observations ############################################################

    def get_managed_resource(self) -> ManagedResource:
        """Fetch the managed resource itself"""
        return ManagedResource(
            self._get(
                constants.MANAGED_KIND, self.identity.name, self.managed_api_version
            )
        )

    def get_statefulset(self) -> dict:
        """Fetch the StatefulSet the controller runs the members in"""
        return self._get(
            constants.STATEFULSET_KIND,
            self.identity.name,
            constants.STATEFULSET_API_VERSION,
        )

    def get_secret(self) -> dict:
        """Fetch the secret holding the automation config"""
        return self._get(
            constants.SECRET_KIND,
            automation_config_secret_name(self.identity),
            constants.CORE_API_VERSION,
        )

    def get_automation_config(self) -> dict:
        """Fetch the secret and decode the automation config document it holds

        Raises:
            NotFoundError:  the secret does not exist
            SecretKeyMissingError:  the secret exists without the config key
            MismatchError:  the payload is not a JSON document
        """
        secret = self.get_secret()
        payload = secret_value(secret, constants.AUTOMATION_CONFIG_KEY)
        if payload is None:
            raise SecretKeyMissingError(
                f"Secret {self.identity.namespace}/{secret['metadata']['name']} "
                f"has no key {constants.AUTOMATION_CONFIG_KEY}",
                expected=constants.AUTOMATION_CONFIG_KEY,
                actual=sorted((secret.get("data") or {}).keys()),
            )
        try:
            return json.loads(payload)
        except json.JSONDecodeError as err:
            raise MismatchError(
                f"Automation config in {self.identity} is not valid JSON: {err}"
            ) from err

    ## Implementation Details ##################################################

    def _get(self, kind: str, name: str, api_version: str) -> dict:
        log.debug2("Fetching [%s/%s] in [%s]", kind, name, self.identity.namespace)
        success, content = self.store.get_object_current_state(
            kind=kind,
            name=name,
            namespace=self.identity.namespace,
            api_version=api_version,
        )
        if not success:
            raise TransientError(
                f"Failed to fetch {kind} {self.identity.namespace}/{name}"
            )
        if content is None:
            raise NotFoundError(kind=kind, name=name, namespace=self.identity.namespace)
        return content


def secret_value(secret: dict, key: str) -> Optional[str]:
    """Get the decoded value of a key in a secret. Values in data are base64
    encoded while stringData holds plain text. None means the key is absent.
    """
    data = secret.get("data") or {}
    if key in data:
        raw = data[key]
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        try:
            return base64.b64decode(raw, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as err:
            raise MismatchError(f"Secret key {key} is not base64 encoded") from err
    return (secret.get("stringData") or {}).get(key)
