"""
This defines the base class for all Store types. A Store is the only
capability the harness needs from the declarative API: fetch an object by
identity, create it with a teardown action, write it back with conflict
detection and delete it.
"""

# Standard
from typing import Callable, List, Optional, Tuple
import abc

# First Party
import alog

# Local
from ..exceptions import NotFoundError

log = alog.use_channel("STORE")

# Type definition for a teardown action registered alongside a creation
CLEANUP_HOOK = Callable[[], None]


class StoreBase(abc.ABC):
    """
    Base class for stores which are responsible for all reads and writes the
    harness performs against the cluster
    """

    def __init__(self):
        self._cleanup_hooks: List[Tuple[str, CLEANUP_HOOK]] = []

    @abc.abstractmethod
    def get_object_current_state(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> Tuple[bool, Optional[dict]]:
        """Fetch the current state of a given object by name. Every call is a
        fresh read.

        Args:
            kind:  str
                The kind of the object to fetch
            name:  str
                The full name of the object to fetch
            namespace:  str
                The namespace to search for the object
            api_version:  str
                The api_version of the resource kind to fetch

        Returns:
            success:  bool
                Whether or not the state fetch operation succeeded
            current_state:  dict or None
                The dict representation of the current object's configuration,
                or None if not present
        """

    @abc.abstractmethod
    def create(
        self,
        resource_definition: dict,
        cleanup_hook: Optional[CLEANUP_HOOK] = None,
    ) -> dict:
        """Create the given object. If a cleanup_hook is given, it is registered
        to run when cleanup() is called.

        Args:
            resource_definition:  dict
                The object to create
            cleanup_hook:  Optional[Callable[[], None]]
                Teardown action associated with this creation

        Returns:
            created:  dict
                The object as stored, including server-populated metadata
        """

    @abc.abstractmethod
    def update(self, resource_definition: dict) -> dict:
        """Write back a full object. If metadata.resourceVersion is set and no
        longer matches the stored object, ConflictError is raised.

        Args:
            resource_definition:  dict
                The modified object, usually fetched and then mutated

        Returns:
            updated:  dict
                The object as stored after the write
        """

    @abc.abstractmethod
    def delete(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ):
        """Delete the given object. NotFoundError is raised if it is absent."""

    ## Cleanup #################################################################

    def register_cleanup(self, description: str, cleanup_hook: CLEANUP_HOOK):
        """Register a teardown action to be run by cleanup()"""
        log.debug2("Registering cleanup for %s", description)
        self._cleanup_hooks.append((description, cleanup_hook))

    def cleanup(self):
        """Run all registered teardown actions, newest first. Objects that are
        already gone are not an error.
        """
        while self._cleanup_hooks:
            description, cleanup_hook = self._cleanup_hooks.pop()
            log.debug("Running cleanup for %s", description)
            try:
                cleanup_hook()
            except NotFoundError:
                log.debug2("%s was already removed", description)
