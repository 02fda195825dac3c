"""
The named checks that verify a managed resource and the children its controller
creates. Every factory binds its parameters into an immutable Check up front so
a check built in a loop never sees a later iteration's values.
"""

# Standard
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Optional, Tuple
import copy
import time

# First Party
import alog

# Local
from . import config, constants, predicates
from .composer import Check, Scenario
from .exceptions import (
    ClusterError,
    MismatchError,
    NotFoundError,
    SecretKeyMissingError,
)
from .fetcher import Fetcher
from .managed_resource import (
    ManagedResource,
    ResourceIdentity,
    automation_config_secret_name,
    make_owner_reference,
    mongo_uri,
    pod_name,
)
from .poller import wait_until
from .store import StoreBase
from .updater import set_members, set_version, update_managed_resource

log = alog.use_channel("CHECK")


## Context #####################################################################


@dataclass(frozen=True)
class CheckContext:
    """Everything a check needs: the store capability, the identity under test
    and the timing policy
    """

    store: StoreBase
    identity: ResourceIdentity
    managed_api_version: str = constants.MANAGED_API_VERSION
    timing: Optional[dict] = None
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    @property
    def fetcher(self) -> Fetcher:
        return Fetcher(self.store, self.identity, self.managed_api_version)

    def window(self, condition: str) -> Tuple[float, float]:
        """Get the (interval, timeout) pair for the given condition kind.
        Conditions missing from the context's timing use the configured window.
        """
        timing = self.timing or {}
        condition_timing = timing.get(condition) or config.timing[condition]
        return condition_timing["interval"], condition_timing["timeout"]

    def wait_until(
        self,
        fetch: Callable[[], Any],
        predicate: Callable[[Any], Any],
        condition: str,
        description: str,
    ) -> Any:
        interval, timeout = self.window(condition)
        return wait_until(
            fetch,
            predicate,
            interval=interval,
            timeout=timeout,
            description=description,
            clock=self.clock,
            sleep=self.sleep,
        )


## Check factories #############################################################


def create_managed_resource(ctx: CheckContext, manifest: dict) -> Check:
    """Create the managed resource and register its deletion for cleanup"""
    return Check(
        f"Create {constants.MANAGED_KIND} Resource",
        partial(_create_managed_resource, ctx, copy.deepcopy(manifest)),
    )


def automation_config_secret_exists(ctx: CheckContext) -> Check:
    return Check(
        "Automation Config Secret Was Correctly Created",
        partial(_automation_config_secret_exists, ctx),
    )


def automation_config_has_version(
    ctx: CheckContext, expected_version: int, wait: bool = False
) -> Check:
    return Check(
        f"Automation Config Has Version {expected_version}",
        partial(_automation_config_has_version, ctx, expected_version, wait),
    )


def statefulset_is_ready(
    ctx: CheckContext, expected_replicas: Optional[int] = None
) -> Check:
    return Check(
        "Stateful Set Reaches Ready State",
        partial(_statefulset_is_ready, ctx, expected_replicas),
    )


def statefulset_has_update_strategy(ctx: CheckContext, strategy: str) -> Check:
    return Check(
        f"Stateful Set Has {strategy} Update Strategy",
        partial(_statefulset_has_update_strategy, ctx, strategy),
    )


def reaches_phase(ctx: CheckContext, phase: str = constants.PHASE_RUNNING) -> Check:
    return Check(
        f"{constants.MANAGED_KIND} Reaches {phase} Phase",
        partial(_reaches_phase, ctx, phase),
    )


def statefulset_has_owner_reference(
    ctx: CheckContext, expected_owner_reference: Optional[dict] = None
) -> Check:
    """If no expected reference is given, the controller reference for the
    managed resource as currently stored is expected
    """
    return Check(
        "Stateful Set Has OwnerReference",
        partial(_statefulset_has_owner_reference, ctx, expected_owner_reference),
    )


def status_matches(ctx: CheckContext, expected_status: Optional[dict] = None) -> Check:
    """If no expected status is given, the Running status for the stored member
    count is expected
    """
    return Check(
        "Test Status Was Updated", partial(_status_matches, ctx, expected_status)
    )


def delete_pod(ctx: CheckContext, index: int) -> Check:
    return Check(
        f"Delete Pod {pod_name(ctx.identity, index)}",
        partial(_delete_pod, ctx, index),
    )


def scale(ctx: CheckContext, members: int) -> Check:
    return Check(
        f"Scale {constants.MANAGED_KIND} To {members} Members",
        partial(_update, ctx, set_members(members)),
    )


def change_version(ctx: CheckContext, version: str) -> Check:
    return Check(
        f"Change {constants.MANAGED_KIND} Version To {version}",
        partial(_update, ctx, set_version(version)),
    )


def basic_functionality(ctx: CheckContext, members: Optional[int] = None) -> Check:
    """The aggregate convergence scenario. Each sub-check runs even if an
    earlier one fails.
    """
    expected_status = None
    if members is not None:
        expected_status = {
            constants.STATUS_URI_KEY: mongo_uri(ctx.identity, members),
            constants.STATUS_PHASE_KEY: constants.PHASE_RUNNING,
        }
    return Scenario(
        "Basic Functionality",
        [
            automation_config_secret_exists(ctx),
            statefulset_is_ready(ctx, members),
            reaches_phase(ctx, constants.PHASE_RUNNING),
            statefulset_has_owner_reference(ctx),
            status_matches(ctx, expected_status),
        ],
    ).as_check()


## Implementations #############################################################


def _create_managed_resource(ctx: CheckContext, manifest: dict):
    resource = ManagedResource(manifest)
    ctx.store.create(
        manifest,
        cleanup_hook=partial(
            ctx.store.delete,
            resource.kind,
            resource.name,
            resource.namespace,
            resource.api_version,
        ),
    )
    log.info("Created %s resource %s", resource.kind, resource.identity)


def _automation_config_secret_exists(ctx: CheckContext):
    name = automation_config_secret_name(ctx.identity)
    secret = ctx.wait_until(
        ctx.fetcher.get_secret,
        predicates.exists,
        "secret_exists",
        f"secret {ctx.identity.namespace}/{name} to exist",
    )
    log.info("Secret %s/%s was successfully created", ctx.identity.namespace, name)
    result = predicates.secret_has_key(secret, constants.AUTOMATION_CONFIG_KEY)
    if not result:
        raise SecretKeyMissingError(
            result.reason,
            expected=constants.AUTOMATION_CONFIG_KEY,
            actual=sorted((secret.get("data") or {}).keys()),
        )
    log.info("The Secret contained the automation config")


def _automation_config_has_version(
    ctx: CheckContext, expected_version: int, wait: bool
):
    fetcher = ctx.fetcher
    predicate = partial(predicates.has_version, expected_version=expected_version)
    if wait:
        ctx.wait_until(
            fetcher.get_automation_config,
            predicate,
            "automation_config_version",
            f"automation config version {expected_version}",
        )
        return
    automation_config = fetcher.get_automation_config()
    _assert_predicate(
        predicate(automation_config),
        expected=expected_version,
        actual=automation_config.get("version"),
    )


def _statefulset_is_ready(ctx: CheckContext, expected_replicas: Optional[int]):
    ctx.wait_until(
        ctx.fetcher.get_statefulset,
        partial(predicates.statefulset_is_ready, expected_replicas=expected_replicas),
        "statefulset_ready",
        f"StatefulSet {ctx.identity} to be ready",
    )
    log.info("StatefulSet %s is ready!", ctx.identity)


def _statefulset_has_update_strategy(ctx: CheckContext, strategy: str):
    ctx.wait_until(
        ctx.fetcher.get_statefulset,
        partial(predicates.statefulset_has_update_strategy, expected=strategy),
        "statefulset_update_strategy",
        f"StatefulSet {ctx.identity} to have update strategy {strategy}",
    )
    log.info("StatefulSet %s has update strategy %s", ctx.identity, strategy)


def _reaches_phase(ctx: CheckContext, phase: str):
    ctx.wait_until(
        _required(ctx.fetcher.get_managed_resource),
        partial(predicates.has_phase, expected_phase=phase),
        "phase",
        f"{constants.MANAGED_KIND} {ctx.identity} to reach phase {phase}",
    )
    log.info("%s %s is %s!", constants.MANAGED_KIND, ctx.identity, phase)


def _statefulset_has_owner_reference(
    ctx: CheckContext, expected_owner_reference: Optional[dict]
):
    fetcher = ctx.fetcher
    if expected_owner_reference is None:
        expected_owner_reference = make_owner_reference(
            _required(fetcher.get_managed_resource)()
        )
    statefulset = fetcher.get_statefulset()
    _assert_predicate(
        predicates.has_owner_reference(statefulset, expected_owner_reference),
        expected=[expected_owner_reference],
        actual=statefulset.get("metadata", {}).get("ownerReferences"),
    )
    log.info("StatefulSet %s has the correct OwnerReference!", ctx.identity)


def _status_matches(ctx: CheckContext, expected_status: Optional[dict]):
    resource = _required(ctx.fetcher.get_managed_resource)()
    if expected_status is None:
        expected_status = {
            constants.STATUS_URI_KEY: resource.mongo_uri(),
            constants.STATUS_PHASE_KEY: constants.PHASE_RUNNING,
        }
    _assert_predicate(
        predicates.status_equals(resource, expected_status),
        expected=expected_status,
        actual=resource.status,
    )


def _delete_pod(ctx: CheckContext, index: int):
    name = pod_name(ctx.identity, index)
    ctx.store.delete(
        kind=constants.POD_KIND,
        name=name,
        namespace=ctx.identity.namespace,
        api_version=constants.CORE_API_VERSION,
    )
    log.info("pod %s/%s deleted", ctx.identity.namespace, name)


def _update(ctx: CheckContext, mutate: Callable[[ManagedResource], None]):
    updated = update_managed_resource(ctx.store, ctx.identity, mutate, sleep=ctx.sleep)
    log.info(
        "Updated %s to members=%s version=%s",
        ctx.identity,
        updated.members,
        updated.version,
    )


## Helpers #####################################################################


def _required(fetch: Callable[[], Any]) -> Callable[[], Any]:
    """Wrap a fetch of the managed resource so that its absence is fatal
    rather than a reason to keep polling
    """

    def required_fetch():
        try:
            return fetch()
        except NotFoundError as err:
            raise ClusterError(f"Managed resource disappeared: {err}") from err

    return required_fetch


def _assert_predicate(result: predicates.PredicateResult, expected: Any, actual: Any):
    if not result:
        raise MismatchError(result.reason, expected=expected, actual=actual)
