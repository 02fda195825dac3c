"""
This module holds common helper functions for making testing easy
"""

# Standard
from contextlib import contextmanager
from typing import List, Optional
from unittest import mock
import base64
import copy
import inspect
import json
import os

# First Party
import alog

# Local
from converge8 import constants
from converge8.config import library_config as config_detail_dict
from converge8.managed_resource import (
    ManagedResource,
    ResourceIdentity,
    automation_config_secret_name,
    make_owner_reference,
    mongo_uri,
    pod_name,
)
from converge8.store import DryRunStore
from converge8.utils import nested_get, nested_set

log = alog.use_channel("TEST")


def configure_logging():
    alog.configure(
        os.environ.get("LOG_LEVEL", "off"),
        os.environ.get("LOG_FILTERS", ""),
        formatter="json"
        if os.environ.get("LOG_JSON", "").lower() == "true"
        else "pretty",
        thread_id=os.environ.get("LOG_THREAD_ID", "").lower() == "true",
    )


configure_logging()

TEST_INSTANCE_NAME = "test-instance"
TEST_INSTANCE_UID = "12345678-1234-1234-1234-123456789012"
TEST_NAMESPACE = "test"
SOME_OTHER_NAMESPACE = "somewhere"
TEST_IDENTITY = ResourceIdentity(name=TEST_INSTANCE_NAME, namespace=TEST_NAMESPACE)

TEST_VERSION = "4.0.6"


## Manifests ###################################################################


def setup_cr(
    members=3,
    version=TEST_VERSION,
    name=TEST_INSTANCE_NAME,
    namespace=TEST_NAMESPACE,
    api_version=constants.MANAGED_API_VERSION,
    **kwargs,
) -> dict:
    cr_dict = copy.deepcopy(kwargs)
    cr_dict.setdefault("kind", constants.MANAGED_KIND)
    cr_dict.setdefault("apiVersion", api_version)
    cr_dict.setdefault("metadata", {}).setdefault("name", name)
    cr_dict["metadata"].setdefault("namespace", namespace)
    spec = cr_dict.setdefault("spec", {})
    spec.setdefault("members", members)
    spec.setdefault("type", "ReplicaSet")
    spec.setdefault("version", version)
    return cr_dict


def make_owner_reference_for(
    name=TEST_INSTANCE_NAME,
    namespace=TEST_NAMESPACE,
    uid=TEST_INSTANCE_UID,
) -> dict:
    """Make the controller reference for a managed resource with a known uid"""
    owner = ManagedResource(setup_cr(name=name, namespace=namespace))
    owner.metadata["uid"] = uid
    return make_owner_reference(owner)


def make_statefulset(  # pylint: disable=too-many-arguments
    identity: ResourceIdentity = TEST_IDENTITY,
    replicas: int = 3,
    ready_replicas: Optional[int] = None,
    current_revision: Optional[str] = "rev-1",
    update_revision: Optional[str] = "rev-1",
    update_strategy: str = constants.ROLLING_UPDATE_STRATEGY,
    owner_references: Optional[List[dict]] = None,
) -> dict:
    if ready_replicas is None:
        ready_replicas = replicas
    if owner_references is None:
        owner_references = [make_owner_reference_for(identity.name, identity.namespace)]
    status = {"replicas": replicas, "readyReplicas": ready_replicas}
    if current_revision is not None:
        status["currentRevision"] = current_revision
    if update_revision is not None:
        status["updateRevision"] = update_revision
    return {
        "apiVersion": constants.STATEFULSET_API_VERSION,
        "kind": constants.STATEFULSET_KIND,
        "metadata": {
            "name": identity.name,
            "namespace": identity.namespace,
            "ownerReferences": owner_references,
        },
        "spec": {
            "replicas": replicas,
            "updateStrategy": {"type": update_strategy},
        },
        "status": status,
    }


def make_secret(
    identity: ResourceIdentity = TEST_IDENTITY,
    automation_config: Optional[dict] = None,
    owner_reference: Optional[dict] = None,
    **data,
) -> dict:
    """Make the automation config secret. Extra kwargs are added as plain text
    data keys and get base64 encoded.
    """
    if automation_config is not None:
        data[constants.AUTOMATION_CONFIG_KEY] = json.dumps(automation_config)
    secret = {
        "apiVersion": constants.CORE_API_VERSION,
        "kind": constants.SECRET_KIND,
        "metadata": {
            "name": automation_config_secret_name(identity),
            "namespace": identity.namespace,
        },
        "data": {
            key: base64.b64encode(val.encode("utf-8")).decode("utf-8")
            for key, val in data.items()
        },
    }
    if owner_reference is not None:
        secret["metadata"]["ownerReferences"] = [owner_reference]
    return secret


def make_pod(
    identity: ResourceIdentity = TEST_IDENTITY,
    index: int = 0,
    owner_reference: Optional[dict] = None,
) -> dict:
    pod = {
        "apiVersion": constants.CORE_API_VERSION,
        "kind": constants.POD_KIND,
        "metadata": {
            "name": pod_name(identity, index),
            "namespace": identity.namespace,
        },
    }
    if owner_reference is not None:
        pod["metadata"]["ownerReferences"] = [owner_reference]
    return pod


## Config ######################################################################


@contextmanager
def library_config(**config_overrides):
    """This context manager sets library config values temporarily and reverts
    them on completion
    """
    # Override the configs and hang onto the old values
    old_vals = {}
    for key, val in config_overrides.items():
        if key in config_detail_dict:
            old_vals[key] = config_detail_dict[key]
        config_detail_dict[key] = val

    # Yield to the context
    yield

    # Revert to the old values
    for key in config_overrides:
        if key in old_vals:
            config_detail_dict[key] = old_vals[key]
        else:
            del config_detail_dict[key]


## Failure simulation ##########################################################


def get_failable_method(fail_flag, method, failure_return=False):
    log.debug4(
        "Setting up failable mock of [%s] with fail flag: %s", str(method), fail_flag
    )

    def failable_method(*args, **kwargs):
        log.debug4(
            "Running failable mock of [%s] with fail flag: %s", str(method), fail_flag
        )
        if isinstance(fail_flag, Exception) or (
            inspect.isclass(fail_flag) and issubclass(fail_flag, Exception)
        ):
            log.debug4("Raising in failable mock")
            raise fail_flag
        if callable(fail_flag):
            log.debug4("Calling callable fail flag")
            res = fail_flag()
            if res is not None:
                return res
        elif fail_flag == "assert":
            log.debug4("Asserting in failable mock")
            raise AssertionError(f"You told me to fail {method}!")
        elif fail_flag:
            log.debug4("Returning %s", failure_return)
            return failure_return
        log.debug4("Passing through (%s, **%s)", args, kwargs)
        res = method(*args, **kwargs)
        log.debug4("Passthrough res: %s", res)
        return res

    return failable_method


class FailOnce:
    """Helper callable that will fail once on the N'th call"""

    def __init__(self, fail_val, fail_number=1):
        self.call_count = 0
        self.fail_number = fail_number
        self.fail_val = fail_val

    def __call__(self, *_, **__):
        self.call_count += 1
        if self.call_count == self.fail_number:
            log.debug("Failing on call %d with %s", self.call_count, self.fail_val)
            if isinstance(self.fail_val, type) and issubclass(self.fail_val, Exception):
                raise self.fail_val("Raising!")
            return self.fail_val
        log.debug("Not failing on call %d", self.call_count)
        return None


class MockStore(DryRunStore):
    """The MockStore wraps a standard DryRunStore and adds configuration
    options to simulate failures in each of its operations. Each operation is
    a mock.Mock so tests can count calls.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        get_state_fail=False,
        get_state_raise=False,
        create_fail=False,
        create_raise=False,
        update_fail=False,
        update_raise=False,
        delete_fail=False,
        delete_raise=False,
        auto_enable=True,
        resources=None,
    ):
        super().__init__(resources)

        self.get_state_fail = "assert" if get_state_raise else get_state_fail
        self.create_fail = "assert" if create_raise else create_fail
        self.update_fail = "assert" if update_raise else update_fail
        self.delete_fail = "assert" if delete_raise else delete_fail

        # If auto-enabling, turn the mocks on now
        if auto_enable:
            self.enable_mocks()

    #######################
    ## Helpers for Tests ##
    #######################

    def enable_mocks(self):
        """Turn the mocks on"""
        self.get_object_current_state = mock.Mock(
            side_effect=get_failable_method(
                self.get_state_fail, super().get_object_current_state, (False, None)
            )
        )
        self.create = mock.Mock(
            side_effect=get_failable_method(self.create_fail, super().create, {})
        )
        self.update = mock.Mock(
            side_effect=get_failable_method(self.update_fail, super().update, {})
        )
        self.delete = mock.Mock(
            side_effect=get_failable_method(self.delete_fail, super().delete, None)
        )

    def get_obj(self, kind, name, namespace=None, api_version=None):
        return self.get_object_current_state(kind, name, namespace, api_version)[1]

    def has_obj(self, *args, **kwargs):
        return self.get_obj(*args, **kwargs) is not None


## Time simulation #############################################################


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it"""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


## Controller simulation #######################################################


class SimulatedController:
    """Stand-in for the controller under test. It watches writes of the managed
    kind in a DryRunStore and moves the children one step closer to
    convergence every time the checks sleep.

    One step either rolls out a changed spec (new automation config version and
    StatefulSet revision, phase Pending), starts one missing member, finishes
    the StatefulSet rollout or reports the Running status.
    """

    def __init__(self, store: DryRunStore, clock: Optional[FakeClock] = None):
        self.store = store
        self.clock = clock or FakeClock()
        self.steps = 0
        self._tracked = {}
        store.register_watch(
            constants.MANAGED_API_VERSION,
            constants.MANAGED_KIND,
            self._on_managed_write,
        )
        store.register_delete_watch(
            constants.CORE_API_VERSION, constants.POD_KIND, self._on_pod_deleted
        )

    def sleep(self, seconds: float):
        """Sleep on the clock and then take one reconcile step"""
        self.clock.sleep(seconds)
        self.step()

    def step(self):
        self.steps += 1
        for identity, state in list(self._tracked.items()):
            content = self._get_managed(identity)
            if content is None:
                log.debug2("Managed resource %s is gone", identity)
                continue
            resource = ManagedResource(content)
            if state["dirty"]:
                state["dirty"] = False
                self._roll_out(resource, state)
            else:
                self._progress(resource, state)

    ## Implementation Details ##################################################

    def _on_managed_write(self, resource: dict):
        identity = ManagedResource(resource).identity
        log.debug2("Observed write of %s", identity)
        state = self._tracked.setdefault(
            identity, {"automation_config_version": 0, "revision": 0, "pods": 0}
        )
        state["dirty"] = True

    def _on_pod_deleted(self, pod: dict):
        metadata = pod.get("metadata", {})
        identity = ResourceIdentity(
            name=metadata["name"].rsplit("-", 1)[0],
            namespace=metadata.get("namespace"),
        )
        if identity in self._tracked:
            content = self._get_managed(identity)
            if content is not None:
                self._sync_ready(identity, ManagedResource(content).members)

    def _get(self, kind, name, identity, api_version) -> Optional[dict]:
        return self.store.get_object_current_state(
            kind, name, identity.namespace, api_version
        )[1]

    def _get_managed(self, identity: ResourceIdentity) -> Optional[dict]:
        return self._get(
            constants.MANAGED_KIND,
            identity.name,
            identity,
            constants.MANAGED_API_VERSION,
        )

    def _apply(self, resource_definition: dict):
        metadata = resource_definition["metadata"]
        current = self._get(
            resource_definition["kind"],
            metadata["name"],
            ResourceIdentity(metadata["name"], metadata["namespace"]),
            resource_definition["apiVersion"],
        )
        if current is None:
            self.store.create(resource_definition)
        else:
            self.store.update(resource_definition)

    def _roll_out(self, resource: ManagedResource, state: dict):
        identity = resource.identity
        owner_reference = make_owner_reference(resource)
        state["automation_config_version"] += 1
        state["revision"] += 1
        log.debug(
            "Rolling out %s: members=%s version=%s",
            identity,
            resource.members,
            resource.version,
        )

        automation_config = {
            "version": state["automation_config_version"],
            "processes": [
                {"name": pod_name(identity, i), "version": resource.version}
                for i in range(resource.members)
            ],
        }
        self._apply(make_secret(identity, automation_config, owner_reference))

        current = self._get(
            constants.STATEFULSET_KIND,
            identity.name,
            identity,
            constants.STATEFULSET_API_VERSION,
        )
        self._apply(
            make_statefulset(
                identity,
                replicas=resource.members,
                ready_replicas=0,
                current_revision=nested_get(current or {}, "status.currentRevision"),
                update_revision=f"{identity.name}-{state['revision']}",
                owner_references=[owner_reference],
            )
        )

        for i in range(resource.members, state["pods"]):
            if self._get(
                constants.POD_KIND,
                pod_name(identity, i),
                identity,
                constants.CORE_API_VERSION,
            ):
                self.store.delete(
                    constants.POD_KIND,
                    pod_name(identity, i),
                    identity.namespace,
                    constants.CORE_API_VERSION,
                )
        state["pods"] = min(state["pods"], resource.members)
        self._sync_ready(identity, resource.members)

        status = copy.deepcopy(resource.status)
        status[constants.STATUS_PHASE_KEY] = constants.PHASE_PENDING
        self.store.set_status(
            constants.MANAGED_KIND,
            identity.name,
            identity.namespace,
            status,
            constants.MANAGED_API_VERSION,
        )

    def _progress(self, resource: ManagedResource, state: dict):
        identity = resource.identity
        missing = [
            i
            for i in range(resource.members)
            if self._get(
                constants.POD_KIND,
                pod_name(identity, i),
                identity,
                constants.CORE_API_VERSION,
            )
            is None
        ]
        if missing:
            log.debug2("Starting member %d of %s", missing[0], identity)
            self.store.create(
                make_pod(identity, missing[0], make_owner_reference(resource))
            )
            state["pods"] = max(state["pods"], missing[0] + 1)
            self._sync_ready(identity, resource.members)
            return

        statefulset = self._get(
            constants.STATEFULSET_KIND,
            identity.name,
            identity,
            constants.STATEFULSET_API_VERSION,
        )
        if statefulset is None:
            return
        sts_status = statefulset.get("status", {})
        if sts_status.get("currentRevision") != sts_status.get("updateRevision"):
            log.debug2("Finishing rollout of %s", identity)
            nested_set(
                statefulset, "status.currentRevision", sts_status["updateRevision"]
            )
            self.store.set_status(
                constants.STATEFULSET_KIND,
                identity.name,
                identity.namespace,
                statefulset["status"],
                constants.STATEFULSET_API_VERSION,
            )
            return

        if resource.phase != constants.PHASE_RUNNING:
            log.debug2("Reporting %s as running", identity)
            self.store.set_status(
                constants.MANAGED_KIND,
                identity.name,
                identity.namespace,
                {
                    constants.STATUS_URI_KEY: mongo_uri(identity, resource.members),
                    constants.STATUS_PHASE_KEY: constants.PHASE_RUNNING,
                },
                constants.MANAGED_API_VERSION,
            )

    def _sync_ready(self, identity: ResourceIdentity, replicas: int):
        """Set readyReplicas to the number of members that exist"""
        ready = sum(
            1
            for i in range(replicas)
            if self._get(
                constants.POD_KIND,
                pod_name(identity, i),
                identity,
                constants.CORE_API_VERSION,
            )
            is not None
        )
        statefulset = self._get(
            constants.STATEFULSET_KIND,
            identity.name,
            identity,
            constants.STATEFULSET_API_VERSION,
        )
        if statefulset is None:
            return
        status = statefulset.get("status", {})
        status["readyReplicas"] = ready
        status["replicas"] = replicas
        self.store.set_status(
            constants.STATEFULSET_KIND,
            identity.name,
            identity.namespace,
            status,
            constants.STATEFULSET_API_VERSION,
        )
