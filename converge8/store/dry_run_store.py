"""
The DryRunStore implements the Store interface but does not actually interact
with the cluster and instead holds the state of the cluster in a local map. It
enforces resourceVersion checks on update the way the API server does, so it
can stand in for the cluster when exercising conflict handling.
"""

# Standard
from datetime import datetime
from itertools import count
from threading import RLock
from typing import Callable, List, Optional, Tuple
import copy
import uuid

# First Party
import alog

# Local
from ..exceptions import ClusterError, ConflictError, NotFoundError
from .base import CLEANUP_HOOK, StoreBase

log = alog.use_channel("DRY-RUN")


class DryRunStore(StoreBase):
    """
    Store which keeps its objects in memory
    """

    def __init__(self, resources: Optional[List[dict]] = None):
        """Construct with an optional set of objects that already exist"""
        super().__init__()
        self._cluster_content = {}
        self._lock = RLock()
        self._resource_versions = count(1)

        # Dicts of registered watches
        self._watches = {}
        self._delete_watches = {}

        for resource in resources or []:
            self._put(resource)

    ## Interface ###############################################################

    def get_object_current_state(self, kind, name, namespace=None, api_version=None):
        log.debug2(
            "DRY RUN get_object_current_state of [%s/%s] in [%s]", kind, name, namespace
        )
        with self._lock:
            matches = [
                entries[name]
                for api_ver, entries in self._cluster_content.get(namespace, {})
                .get(kind, {})
                .items()
                if name in entries and api_version in [None, api_ver]
            ]
            log.debug3(
                "Found %d matches for [%s/%s] in %s",
                len(matches),
                kind,
                name,
                namespace,
            )
            if len(matches) == 1:
                return True, copy.deepcopy(matches[0])
        return True, None

    def create(self, resource_definition, cleanup_hook: Optional[CLEANUP_HOOK] = None):
        api_version, kind, name, namespace = self._identifiers(resource_definition)
        log.debug("DRY RUN create [%s/%s/%s/%s]", namespace, kind, api_version, name)
        with self._lock:
            if self._lookup(namespace, kind, api_version, name) is not None:
                raise ClusterError(f"{kind} {namespace}/{name} already exists")
            created = self._put(resource_definition)
        if cleanup_hook is not None:
            self.register_cleanup(f"{kind} {namespace}/{name}", cleanup_hook)
        self._call_watches(self._watches, created)
        return copy.deepcopy(created)

    def update(self, resource_definition):
        api_version, kind, name, namespace = self._identifiers(resource_definition)
        log.debug("DRY RUN update [%s/%s/%s/%s]", namespace, kind, api_version, name)
        with self._lock:
            current = self._lookup(namespace, kind, api_version, name)
            if current is None:
                raise NotFoundError(kind=kind, name=name, namespace=namespace)
            expected_version = resource_definition.get("metadata", {}).get(
                "resourceVersion"
            )
            current_version = current["metadata"]["resourceVersion"]
            if expected_version and expected_version != current_version:
                log.debug2(
                    "Rejecting stale write of [%s/%s]: %s != %s",
                    kind,
                    name,
                    expected_version,
                    current_version,
                )
                raise ConflictError(
                    f"Operation cannot be fulfilled on {kind} {namespace}/{name}: "
                    "the object has been modified"
                )
            updated = self._put(resource_definition, current)
        self._call_watches(self._watches, updated)
        return copy.deepcopy(updated)

    def delete(self, kind, name, namespace=None, api_version=None):
        log.debug("DRY RUN delete [%s/%s/%s/%s]", namespace, kind, api_version, name)
        with self._lock:
            _, content = self.get_object_current_state(
                kind=kind, name=name, namespace=namespace, api_version=api_version
            )
            if content is None:
                raise NotFoundError(kind=kind, name=name, namespace=namespace)
            self._delete_key(namespace, kind, content.get("apiVersion"), name)
        self._call_watches(self._delete_watches, content)

    ## Dry Run Methods #########################################################

    def set_status(
        self,
        kind: str,
        name: str,
        namespace: Optional[str],
        status: dict,
        api_version: Optional[str] = None,
    ) -> bool:
        """Write the status of an object the way a controller writes the status
        subresource: unconditionally, bumping its resourceVersion

        Returns:
            found:  bool
                Whether or not the object existed
        """
        log.debug2("DRY RUN set_status of [%s/%s] in %s", kind, name, namespace)
        with self._lock:
            _, content = self.get_object_current_state(
                kind, name, namespace, api_version
            )
            if content is None:
                return False
            content["status"] = status
            content["metadata"].pop("resourceVersion", None)
            self._put(content, content)
        return True

    def register_watch(  # pylint: disable=too-many-arguments
        self,
        api_version: str,
        kind: str,
        callback: Callable[[dict], None],
        namespace="",
        name="",
    ):
        """Register a callback to watch for write events on a given
        api_version/kind
        """
        watch_key = self._watch_key(api_version, kind, namespace, name)
        log.debug("Registering watch for %s", watch_key)
        self._watches.setdefault(watch_key, []).append(callback)

    def register_delete_watch(  # pylint: disable=too-many-arguments
        self,
        api_version: str,
        kind: str,
        callback: Callable[[dict], None],
        namespace="",
        name="",
    ):
        """Register a callback to call on deletion events on a given
        api_version/kind
        """
        watch_key = self._watch_key(api_version, kind, namespace, name)
        log.debug("Registering delete watch for %s", watch_key)
        self._delete_watches.setdefault(watch_key, []).append(callback)

    ## Implementation Details ##################################################

    @staticmethod
    def _identifiers(resource_definition: dict) -> Tuple[str, str, str, str]:
        api_version = resource_definition.get("apiVersion")
        kind = resource_definition.get("kind")
        metadata = resource_definition.get("metadata", {})
        name = metadata.get("name")
        namespace = metadata.get("namespace")
        assert None not in [kind, name], "Cannot store resource without kind or name"
        return api_version, kind, name, namespace

    @staticmethod
    def _watch_key(api_version="", kind="", namespace="", name=""):
        return ":".join([api_version or "", kind or "", namespace or "", name or ""])

    def _entries(self, namespace, kind, api_version) -> dict:
        return (
            self._cluster_content.setdefault(namespace, {})
            .setdefault(kind, {})
            .setdefault(api_version, {})
        )

    def _lookup(self, namespace, kind, api_version, name) -> Optional[dict]:
        return (
            self._cluster_content.get(namespace, {})
            .get(kind, {})
            .get(api_version, {})
            .get(name)
        )

    def _put(self, resource_definition: dict, current: Optional[dict] = None) -> dict:
        """Store a copy of the object with server-populated metadata"""
        api_version, kind, name, namespace = self._identifiers(resource_definition)
        resource = copy.deepcopy(resource_definition)
        metadata = resource.setdefault("metadata", {})
        current_metadata = (current or {}).get("metadata", {})
        metadata["uid"] = current_metadata.get(
            "uid", metadata.get("uid", str(uuid.uuid4()))
        )
        metadata["creationTimestamp"] = current_metadata.get(
            "creationTimestamp",
            metadata.get("creationTimestamp", datetime.now().isoformat()),
        )
        metadata["resourceVersion"] = str(next(self._resource_versions))
        with self._lock:
            self._entries(namespace, kind, api_version)[name] = resource
        return resource

    def _delete_key(self, namespace, kind, api_version, name):
        del self._cluster_content[namespace][kind][api_version][name]
        if not self._cluster_content[namespace][kind][api_version]:
            del self._cluster_content[namespace][kind][api_version]
        if not self._cluster_content[namespace][kind]:
            del self._cluster_content[namespace][kind]
        if not self._cluster_content[namespace]:
            del self._cluster_content[namespace]

    def _call_watches(self, callback_map: dict, resource: dict):
        api_version, kind, name, namespace = self._identifiers(resource)
        watch_keys = [
            self._watch_key(api_version, kind, namespace, name),
            self._watch_key(api_version, kind, namespace),
            self._watch_key(api_version, kind),
        ]
        for key in watch_keys:
            for callback in callback_map.get(key, []):
                log.debug2("Calling registered watch [%s] for [%s]", callback, key)
                callback(copy.deepcopy(resource))
