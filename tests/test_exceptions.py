"""
Test the custom exceptions and assert functions
"""

# Third Party
import pytest

# Local
from converge8 import exceptions


def test_retryable_split():
    """Absence, transient failures and conflicts are retryable; everything
    else ends the check
    """
    assert exceptions.NotFoundError("Pod", "a", "b").is_retryable
    assert exceptions.TransientError().is_retryable
    assert exceptions.ConflictError().is_retryable
    assert not exceptions.WaitTimeoutError().is_retryable
    assert not exceptions.MismatchError().is_retryable
    assert not exceptions.SecretKeyMissingError().is_retryable
    assert not exceptions.ClusterError().is_retryable
    assert not exceptions.ConfigError().is_retryable
    assert not exceptions.ScenarioFailedError().is_retryable


def test_not_found_message():
    err = exceptions.NotFoundError("Secret", "foo-config", "test")
    assert str(err) == "Secret test/foo-config not found"
    assert err.kind == "Secret"


def test_wait_timeout_message_details():
    err = exceptions.WaitTimeoutError(
        "Timed out", last_reason="1/3 ready", last_error=KeyError("x"), attempts=4
    )
    assert "last reason: 1/3 ready" in str(err)
    assert "last error" in str(err)
    assert err.attempts == 4
    assert str(exceptions.WaitTimeoutError("Timed out")) == "Timed out"


def test_assert_matches_pass():
    exceptions.assert_matches({"a": 1}, {"a": 1})


def test_assert_matches_fail():
    """A mismatch carries both sides"""
    with pytest.raises(exceptions.MismatchError, match="phase: expected") as exc_info:
        exceptions.assert_matches("Running", "Pending", "phase")
    assert exc_info.value.expected == "Running"
    assert exc_info.value.actual == "Pending"


def test_assert_config_pass():
    """Make sure that no exception is throw by assert_config when it
    passes
    """
    exceptions.assert_config(True)


def test_assert_config_fail():
    """Make sure the right exception is thrown by assert_config when it
    fails
    """
    exception_msg = "error mesage"
    with pytest.raises(exceptions.ConfigError, match=exception_msg):
        exceptions.assert_config(False, exception_msg)


def test_assert_cluster_pass():
    """Make sure that no exception is throw by assert_cluster when it
    passes
    """
    exceptions.assert_cluster(True)


def test_assert_cluster_fail():
    """Make sure the right exception is thrown by assert_cluster when it
    fails
    """
    exception_msg = "error mesage"
    with pytest.raises(exceptions.ClusterError, match=exception_msg):
        exceptions.assert_cluster(False, exception_msg)
