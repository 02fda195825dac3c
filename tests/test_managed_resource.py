"""
Tests for the managed resource wrapper and the child naming contract
"""

# Third Party
import pytest

# Local
from converge8 import constants
from converge8.managed_resource import (
    ManagedResource,
    ResourceIdentity,
    automation_config_secret_name,
    make_owner_reference,
    mongo_uri,
    pod_name,
    service_name,
)
from converge8.test_helpers.helpers import TEST_IDENTITY, TEST_INSTANCE_UID, setup_cr


def test_identity_str():
    assert str(ResourceIdentity("foo", "bar")) == "bar/foo"


def test_child_names():
    assert automation_config_secret_name(TEST_IDENTITY) == "test-instance-config"
    assert service_name(TEST_IDENTITY) == "test-instance-svc"
    assert pod_name(TEST_IDENTITY, 2) == "test-instance-2"


def test_mongo_uri():
    """The uri lists one host per member in ordinal order"""
    assert mongo_uri(ResourceIdentity("db", "ns"), 2) == (
        "mongodb://db-0.db-svc.ns.svc.cluster.local:27017,"
        "db-1.db-svc.ns.svc.cluster.local:27017"
    )


def test_managed_resource_accessors():
    cr = setup_cr(members=5, version="4.2.0")
    cr["metadata"]["uid"] = TEST_INSTANCE_UID
    cr["status"] = {"phase": constants.PHASE_RUNNING}
    resource = ManagedResource(cr)
    assert resource.identity == TEST_IDENTITY
    assert resource.members == 5
    assert resource.version == "4.2.0"
    assert resource.phase == constants.PHASE_RUNNING
    assert resource.mongo_uri() == mongo_uri(TEST_IDENTITY, 5)


def test_managed_resource_setters_mutate_definition():
    resource = ManagedResource(setup_cr(members=3))
    resource.members = 7
    resource.version = "5.0.0"
    assert resource.definition["spec"]["members"] == 7
    assert resource.definition["spec"]["version"] == "5.0.0"


def test_managed_resource_no_status():
    resource = ManagedResource(setup_cr())
    assert resource.status == {}
    assert resource.phase is None


def test_managed_resource_requires_kind():
    cr = setup_cr()
    del cr["kind"]
    with pytest.raises(AssertionError):
        ManagedResource(cr)


def test_make_owner_reference():
    cr = setup_cr()
    cr["metadata"]["uid"] = TEST_INSTANCE_UID
    assert make_owner_reference(ManagedResource(cr)) == {
        "apiVersion": constants.MANAGED_API_VERSION,
        "kind": constants.MANAGED_KIND,
        "name": TEST_IDENTITY.name,
        "uid": TEST_INSTANCE_UID,
        "controller": True,
        "blockOwnerDeletion": True,
    }
