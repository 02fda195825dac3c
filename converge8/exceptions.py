"""
This module implements custom exceptions
"""

# Standard
from typing import Any, Optional

## Base Error ##################################################################


class Converge8Error(Exception):
    """Base class for all converge8 exceptions"""

    def __init__(self, message: str, is_retryable: bool):
        """Construct with a flag indicating whether this error may resolve on
        its own if the operation is attempted again. This will be a static
        property of all children.
        """
        super().__init__(message)
        self._is_retryable = is_retryable

    @property
    def is_retryable(self):
        """Property indicating whether or not a polling or updating loop should
        absorb this error and try again
        """
        return self._is_retryable


## Retryable Errors ############################################################


class Converge8RetryableError(Converge8Error):
    """A Converge8RetryableError indicates a condition that is expected while a
    resource is still converging and is absorbed by the poller and the
    optimistic updater.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_retryable=True)


class NotFoundError(Converge8RetryableError):
    """The requested object is not present in the store"""

    def __init__(self, kind: str = "", name: str = "", namespace: str = ""):
        self.kind = kind
        self.name = name
        self.namespace = namespace
        super().__init__(f"{kind} {namespace}/{name} not found")


class TransientError(Converge8RetryableError):
    """The store could not be reached or refused the read"""


class ConflictError(Converge8RetryableError):
    """A write was rejected because the object changed since it was read"""


## Terminal Errors #############################################################


class Converge8TerminalError(Converge8Error):
    """A Converge8TerminalError is one that ends the current check"""

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_retryable=False)


class WaitTimeoutError(Converge8TerminalError):
    """A polled predicate was never satisfied within its window. The last
    observation is kept for diagnostics.
    """

    def __init__(
        self,
        message: str = "",
        last_value: Any = None,
        last_error: Optional[Exception] = None,
        last_reason: str = "",
        attempts: int = 0,
        elapsed: float = 0.0,
    ):
        self.last_value = last_value
        self.last_error = last_error
        self.last_reason = last_reason
        self.attempts = attempts
        self.elapsed = elapsed
        details = []
        if last_reason:
            details.append(f"last reason: {last_reason}")
        if last_error is not None:
            details.append(f"last error: {last_error}")
        if details:
            message = f"{message} ({'; '.join(details)})"
        super().__init__(message)


class MismatchError(Converge8TerminalError):
    """A fetched value disagrees with the expectation outside of polling"""

    def __init__(self, message: str = "", expected: Any = None, actual: Any = None):
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class SecretKeyMissingError(MismatchError):
    """The secret exists but does not hold the expected key"""


class ClusterError(Converge8TerminalError):
    """Exception caused when a store operation fails in an unexpected way"""


class ConfigError(Converge8TerminalError):
    """Exception caused during usage of user-provided configuration"""


class ScenarioFailedError(Converge8TerminalError):
    """One or more checks in a scenario failed"""

    def __init__(self, message: str = "", failures=None):
        self.failures = failures or []
        super().__init__(message)


## Assertions ##################################################################


def assert_matches(expected: Any, actual: Any, message: str = ""):
    """Replacement for assertEqual which will throw a MismatchError carrying
    both sides of the comparison
    """
    if expected != actual:
        prefix = f"{message}: " if message else ""
        raise MismatchError(
            f"{prefix}expected {expected!r}, got {actual!r}",
            expected=expected,
            actual=actual,
        )


def assert_cluster(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ClusterError. This should
    be used when an operation against the store fails in a way that retrying
    will not fix.
    """
    if not condition:
        raise ClusterError(message)


def assert_config(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ConfigError"""
    if not condition:
        raise ConfigError(message)
