"""
The poller repeatedly samples remote state until a predicate is satisfied or a
deadline expires. It is a blocking loop whose only suspension points are the
sleeps between attempts.
"""

# Standard
from typing import Any, Callable, Optional, TypeVar
import time

# First Party
import alog

# Local
from .exceptions import Converge8RetryableError, WaitTimeoutError

log = alog.use_channel("POLL")

T = TypeVar("T")


def wait_until(
    fetch: Callable[[], T],
    predicate: Callable[[T], Any],
    *,
    interval: float,
    timeout: float,
    description: str = "",
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Poll fetch() until predicate() holds for the fetched value

    NOTE: interval and timeout have no defaults. Callers take them from the
        timing config for the condition kind they are waiting on.

    Args:
        fetch:  Callable[[], T]
            Performs one fresh read. NotFoundError and TransientError mean
            "not yet" and polling continues. Any other error propagates.
        predicate:  Callable[[T], Any]
            Evaluated against each fetched value. A truthy result stops the
            loop. If the result has a "reason" attribute, it is kept for the
            timeout diagnostic.
        interval:  float
            Seconds to sleep between attempts
        timeout:  float
            Seconds after which the wait fails
        description:  str
            Human readable name of the condition for logs and errors

    Kwargs:
        clock:  Callable[[], float]
            Monotonic time source
        sleep:  Callable[[float], None]
            Suspension function

    Returns:
        value:  T
            The fetched value that satisfied the predicate

    Raises:
        WaitTimeoutError:  if the deadline passes first
    """
    if interval <= 0:
        raise ValueError(f"Poll interval must be positive, got {interval}")
    if timeout < 0:
        raise ValueError(f"Poll timeout must not be negative, got {timeout}")

    description = description or getattr(predicate, "__name__", "condition")
    start = clock()
    deadline = start + timeout
    attempts = 0
    last_value: Optional[T] = None
    last_error: Optional[Exception] = None
    last_reason = ""

    while True:
        attempts += 1
        try:
            value = fetch()
        except Converge8RetryableError as err:
            log.debug2("[%s] attempt %d not ready: %s", description, attempts, err)
            last_error = err
        else:
            last_value = value
            last_error = None
            result = predicate(value)
            if result:
                log.debug(
                    "[%s] satisfied after %d attempt(s)", description, attempts
                )
                return value
            last_reason = getattr(result, "reason", "") or ""
            log.debug2(
                "[%s] attempt %d not satisfied: %s", description, attempts, last_reason
            )

        now = clock()
        if now >= deadline:
            elapsed = now - start
            log.debug("[%s] timed out after %.2fs", description, elapsed)
            raise WaitTimeoutError(
                f"Timed out after {elapsed:.1f}s waiting for {description}",
                last_value=last_value,
                last_error=last_error,
                last_reason=last_reason,
                attempts=attempts,
                elapsed=elapsed,
            )

        # Never sleep past the deadline so the final attempt lands on it
        sleep(min(interval, deadline - now))
