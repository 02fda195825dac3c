"""
This library holds the predicates that describe what correct convergence looks
like for the managed resource and the resources its controller owns. Each
predicate is a pure function of freshly fetched state.
"""

# Standard
from dataclasses import dataclass
from typing import Any, List, Optional

# First Party
import alog

# Local
from . import constants
from .managed_resource import ManagedResource
from .utils import nested_get

## Globals #####################################################################

log = alog.use_channel("PRED")


@dataclass(frozen=True)
class PredicateResult:
    """The outcome of a predicate. Truthy iff satisfied; the reason explains a
    mismatch and is only used for diagnostics.
    """

    satisfied: bool
    reason: str = ""

    def __bool__(self):
        return self.satisfied


SATISFIED = PredicateResult(True)


def _unsatisfied(reason: str, *args) -> PredicateResult:
    reason = reason % args if args else reason
    log.debug2("Not satisfied: %s", reason)
    return PredicateResult(False, reason)


## Child workload ##############################################################


def statefulset_is_ready(
    statefulset: dict, expected_replicas: Optional[int] = None
) -> PredicateResult:
    """A StatefulSet is ready when every desired replica is ready AND the
    rollout has finished. Replica counts alone report a stale revision with all
    members up as ready.

    Args:
        statefulset:  dict
            The StatefulSet as read from the store
        expected_replicas:  Optional[int]
            The member count the caller expects. Defaults to spec.replicas.
    """
    desired = expected_replicas
    if desired is None:
        desired = nested_get(statefulset, "spec.replicas")
    if desired is None:
        return _unsatisfied("No desired replica count")

    ready = nested_get(statefulset, "status.readyReplicas") or 0
    if ready != desired:
        return _unsatisfied("%s/%s replicas ready", ready, desired)

    current_revision = nested_get(statefulset, "status.currentRevision")
    update_revision = nested_get(statefulset, "status.updateRevision")
    if not update_revision or current_revision != update_revision:
        return _unsatisfied(
            "Rollout in progress: currentRevision=%s updateRevision=%s",
            current_revision,
            update_revision,
        )
    return SATISFIED


def statefulset_has_update_strategy(
    statefulset: dict, expected: str
) -> PredicateResult:
    """The StatefulSet is configured with the expected update strategy type"""
    strategy = nested_get(statefulset, "spec.updateStrategy.type")
    if strategy != expected:
        return _unsatisfied("Update strategy is %s, expected %s", strategy, expected)
    return SATISFIED


def has_owner_reference(child: dict, owner_reference: dict) -> PredicateResult:
    """The child carries exactly one ownership back-reference and it points at
    the expected owner. The kind must always be the managed kind.
    """
    owner_references: List[dict] = (
        child.get("metadata", {}).get("ownerReferences") or []
    )
    if len(owner_references) != 1:
        return _unsatisfied(
            "Expected exactly one owner reference, found %d", len(owner_references)
        )
    actual = owner_references[0]
    if actual.get("kind") != constants.MANAGED_KIND:
        return _unsatisfied(
            "Owner reference kind is %s, expected %s",
            actual.get("kind"),
            constants.MANAGED_KIND,
        )
    for field in ["apiVersion", "name", "uid"]:
        if actual.get(field) != owner_reference.get(field):
            return _unsatisfied(
                "Owner reference %s is %s, expected %s",
                field,
                actual.get(field),
                owner_reference.get(field),
            )
    return SATISFIED


## Managed resource ############################################################


def has_phase(resource: ManagedResource, expected_phase: str) -> PredicateResult:
    """The managed resource reports the expected phase"""
    if resource.phase != expected_phase:
        return _unsatisfied("Phase is %s, expected %s", resource.phase, expected_phase)
    return SATISFIED


def status_equals(resource: ManagedResource, expected_status: dict) -> PredicateResult:
    """The full observed status structurally equals the expected status"""
    if resource.status != expected_status:
        return _unsatisfied(
            "Status is %s, expected %s", resource.status, expected_status
        )
    return SATISFIED


## Automation config ###########################################################


def exists(_obj: Any) -> PredicateResult:
    """Any object that could be fetched satisfies this"""
    return SATISFIED


def secret_has_key(
    secret: dict, key: str = constants.AUTOMATION_CONFIG_KEY
) -> PredicateResult:
    """The secret was fetched and holds the given key"""
    data = secret.get("data") or {}
    string_data = secret.get("stringData") or {}
    if key not in data and key not in string_data:
        return _unsatisfied(
            "Secret %s has no key %s", secret.get("metadata", {}).get("name"), key
        )
    return SATISFIED


def has_version(automation_config: dict, expected_version: int) -> PredicateResult:
    """The automation config document is at the expected version"""
    version = automation_config.get("version")
    if version != expected_version:
        return _unsatisfied(
            "Automation config version is %s, expected %s", version, expected_version
        )
    return SATISFIED
