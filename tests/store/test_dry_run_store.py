"""Tests for the DryRunStore

NOTE: The majority of the functionality is exercised by the check and updater
    tests, so the tests here only test elements that are particularly delicate
    and/or not covered elsewhere.
"""
# Standard
from unittest.mock import Mock

# Third Party
import pytest

# Local
from converge8 import constants
from converge8.exceptions import ClusterError, ConflictError, NotFoundError
from converge8.store import DryRunStore
from converge8.test_helpers.helpers import (
    SOME_OTHER_NAMESPACE,
    TEST_NAMESPACE,
    make_pod,
    setup_cr,
)

## Helpers #####################################################################


def make_obj(api_version="foo.bar/v1", kind="Foo", name="foobar", spec=None):
    return {
        "apiVersion": api_version,
        "kind": kind,
        "metadata": {"name": name, "namespace": SOME_OTHER_NAMESPACE},
        "spec": spec or {"a": 1},
    }


def get(store, obj):
    return store.get_object_current_state(
        obj["kind"],
        obj["metadata"]["name"],
        obj["metadata"]["namespace"],
        obj["apiVersion"],
    )[1]


## Tests #######################################################################


def test_create_populates_server_metadata():
    """Created objects get a uid, creationTimestamp and resourceVersion"""
    store = DryRunStore()
    created = store.create(make_obj())
    metadata = created["metadata"]
    assert metadata["uid"]
    assert metadata["creationTimestamp"]
    assert metadata["resourceVersion"]
    assert get(store, make_obj()) == created


def test_create_existing_fails():
    store = DryRunStore([make_obj()])
    with pytest.raises(ClusterError):
        store.create(make_obj())


def test_reads_are_copies():
    """Mutating a read object does not change the stored object"""
    store = DryRunStore([make_obj()])
    content = get(store, make_obj())
    content["spec"]["a"] = 2
    assert get(store, make_obj())["spec"]["a"] == 1


def test_api_version_filter():
    store = DryRunStore([make_obj()])
    assert store.get_object_current_state("Foo", "foobar", SOME_OTHER_NAMESPACE)[1]
    assert not store.get_object_current_state(
        "Foo", "foobar", SOME_OTHER_NAMESPACE, "foo.bar/v2"
    )[1]
    assert not store.get_object_current_state("Foo", "foobar", TEST_NAMESPACE)[1]


def test_update_bumps_resource_version_and_keeps_uid():
    store = DryRunStore([make_obj()])
    current = get(store, make_obj())
    current["spec"]["a"] = 2
    updated = store.update(current)
    assert updated["spec"]["a"] == 2
    assert updated["metadata"]["uid"] == current["metadata"]["uid"]
    assert updated["metadata"]["resourceVersion"] != current["metadata"][
        "resourceVersion"
    ]


def test_update_stale_resource_version_conflicts():
    """A write carrying an old resourceVersion is rejected"""
    store = DryRunStore([make_obj()])
    first = get(store, make_obj())
    second = get(store, make_obj())
    first["spec"]["a"] = 2
    store.update(first)
    second["spec"]["a"] = 3
    with pytest.raises(ConflictError):
        store.update(second)
    assert get(store, make_obj())["spec"]["a"] == 2


def test_update_without_resource_version_is_unconditional():
    store = DryRunStore([make_obj()])
    store.update(make_obj(spec={"a": 5}))
    assert get(store, make_obj())["spec"]["a"] == 5


def test_update_missing_not_found():
    with pytest.raises(NotFoundError):
        DryRunStore().update(make_obj())


def test_failed_update_leaves_no_empty_entries():
    """Looking up an absent object does not grow the content map"""
    store = DryRunStore([setup_cr()])
    before = {ns: dict(kinds) for ns, kinds in store._cluster_content.items()}
    with pytest.raises(NotFoundError):
        store.update(make_obj())
    with pytest.raises(NotFoundError):
        store.update(make_obj(kind="Bar"))
    assert SOME_OTHER_NAMESPACE not in store._cluster_content
    assert store._cluster_content.keys() == before.keys()


def test_delete():
    store = DryRunStore([make_obj()])
    store.delete("Foo", "foobar", SOME_OTHER_NAMESPACE)
    assert get(store, make_obj()) is None
    with pytest.raises(NotFoundError):
        store.delete("Foo", "foobar", SOME_OTHER_NAMESPACE)


def test_set_status_bumps_resource_version():
    """Status writes invalidate earlier reads of the object"""
    cr = setup_cr()
    store = DryRunStore([cr])
    name, namespace = cr["metadata"]["name"], cr["metadata"]["namespace"]
    before = store.get_object_current_state(constants.MANAGED_KIND, name, namespace)[1]
    assert store.set_status(
        constants.MANAGED_KIND, name, namespace, {"phase": constants.PHASE_RUNNING}
    )
    with pytest.raises(ConflictError):
        store.update(before)
    assert not store.set_status(constants.MANAGED_KIND, "nope", namespace, {})


def test_cleanup_runs_hooks_newest_first():
    """Cleanup hooks run in reverse order and absent objects are ignored"""
    store = DryRunStore()
    order = []
    store.create(make_obj(name="a"), cleanup_hook=lambda: order.append("a"))
    store.create(make_obj(name="b"), cleanup_hook=lambda: order.append("b"))
    store.register_cleanup(
        "already gone",
        lambda: store.delete("Foo", "missing", SOME_OTHER_NAMESPACE),
    )
    store.cleanup()
    assert order == ["b", "a"]
    store.cleanup()
    assert order == ["b", "a"]


def test_watches_triggered():
    """Registered watches are triggered on create and update of the right
    GVK and not for other GVKs
    """
    store = DryRunStore()
    match = Mock()
    other = Mock()
    store.register_watch("foo.bar/v1", "Foo", match)
    store.register_watch("foo.bar/v2", "Foo", other)
    obj = make_obj()
    store.create(obj)
    store.update(make_obj(spec={"a": 2}))
    assert match.call_count == 2
    assert match.call_args[0][0]["spec"] == {"a": 2}
    assert not other.called


def test_watches_scoped_by_namespace_and_name():
    store = DryRunStore()
    by_name = Mock()
    other_name = Mock()
    store.register_watch("foo.bar/v1", "Foo", by_name, SOME_OTHER_NAMESPACE, "a")
    store.register_watch("foo.bar/v1", "Foo", other_name, SOME_OTHER_NAMESPACE, "b")
    store.create(make_obj(name="a"))
    assert by_name.called
    assert not other_name.called


def test_delete_watches_triggered():
    store = DryRunStore([make_pod()])
    callback = Mock()
    store.register_delete_watch(
        constants.CORE_API_VERSION, constants.POD_KIND, callback
    )
    pod = make_pod()
    store.delete(
        constants.POD_KIND, pod["metadata"]["name"], pod["metadata"]["namespace"]
    )
    callback.assert_called_once()
    assert callback.call_args[0][0]["metadata"]["name"] == pod["metadata"]["name"]
