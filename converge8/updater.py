"""
The optimistic updater mutates the managed resource's desired state with a
read-modify-write loop that retries from a fresh read when a concurrent writer
got there first
"""

# Standard
from functools import partial
from typing import Callable, Optional
import time

# First Party
import alog

# Local
from . import config
from .exceptions import ConflictError, TransientError
from .fetcher import Fetcher
from .managed_resource import ManagedResource, ResourceIdentity
from .store import StoreBase

log = alog.use_channel("UPDTR")

# Type definition for a mutation. It must assign absolute values since it is
# applied again to a fresh copy on every retry.
MUTATION = Callable[[ManagedResource], None]  # pylint: disable=invalid-name


def update_managed_resource(
    store: StoreBase,
    identity: ResourceIdentity,
    mutate: MUTATION,
    *,
    max_retries: Optional[int] = None,
    backoff_base_seconds: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ManagedResource:
    """Fetch the managed resource, apply mutate to a fresh copy and write it
    back. Conflicts and transient failures restart the whole sequence from a
    new fetch.

    Args:
        store:  StoreBase
            The store holding the managed resource
        identity:  ResourceIdentity
            The managed resource to update
        mutate:  Callable[[ManagedResource], None]
            Absolute assignment applied to the fetched resource's spec

    Kwargs:
        max_retries:  Optional[int]
            Retries after the first attempt. Defaults to
            config.optimistic_update.retries
        backoff_base_seconds:  Optional[float]
            Linear backoff unit. Defaults to
            config.optimistic_update.backoff_base_seconds

    Returns:
        updated:  ManagedResource
            The resource as stored after the successful write

    Raises:
        ConflictError:  if every attempt conflicted
        TransientError:  if the last attempt failed transiently
        NotFoundError:  if the managed resource is gone
    """
    if max_retries is None:
        max_retries = config.optimistic_update.retries
    if backoff_base_seconds is None:
        backoff_base_seconds = config.optimistic_update.backoff_base_seconds

    fetcher = Fetcher(store, identity)
    attempt = 0
    while True:
        attempt += 1
        try:
            resource = fetcher.get_managed_resource()
            log.debug3(
                "Attempt %d updating %s at resourceVersion %s",
                attempt,
                identity,
                resource.resource_version,
            )
            mutate(resource)
            updated = store.update(resource.definition)
        except (ConflictError, TransientError) as err:
            if attempt > max_retries:
                log.warning(
                    "Giving up updating %s after %d attempts: %s",
                    identity,
                    attempt,
                    err,
                )
                raise type(err)(
                    f"Failed to update {identity} after {attempt} attempts: {err}"
                ) from err
            backoff_duration = backoff_base_seconds * attempt
            log.debug2(
                "%s updating %s. Retrying in %fs",
                type(err).__name__,
                identity,
                backoff_duration,
            )
            sleep(backoff_duration)
            continue

        log.debug("Updated %s on attempt %d", identity, attempt)
        return ManagedResource(updated)


## Mutations ###################################################################


def _set_members(members: int, resource: ManagedResource):
    resource.members = members


def _set_version(version: str, resource: ManagedResource):
    resource.version = version


def set_members(members: int) -> MUTATION:
    """Mutation that sets the member count to an absolute value"""
    return partial(_set_members, members)


def set_version(version: str) -> MUTATION:
    """Mutation that sets the server version"""
    return partial(_set_version, version)
