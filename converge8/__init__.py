"""
Package exports
"""

# Local
from . import checks, config, constants, predicates
from .checks import CheckContext
from .composer import Check, CheckResult, Scenario, ScenarioResult
from .exceptions import (
    ClusterError,
    ConflictError,
    MismatchError,
    NotFoundError,
    ScenarioFailedError,
    SecretKeyMissingError,
    TransientError,
    WaitTimeoutError,
    assert_cluster,
    assert_config,
    assert_matches,
)
from .fetcher import Fetcher
from .log_format import Converge8JsonFormatter, configure_logging
from .managed_resource import ManagedResource, ResourceIdentity, make_owner_reference
from .poller import wait_until
from .store import DryRunStore, OpenshiftStore, StoreBase
from .updater import set_members, set_version, update_managed_resource
