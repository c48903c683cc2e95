"""Bounded readiness polling."""

from dataclasses import dataclass
from typing import Callable

from stackctl.core.clock import Clock, SystemClock
from stackctl.core.exceptions import ReadinessTimeoutError
from stackctl.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed attempt count with a fixed delay between attempts."""

    max_attempts: int = 30
    interval: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval < 0:
            raise ValueError("interval must not be negative")


def poll_until_ready(
    predicate: Callable[[], bool],
    policy: RetryPolicy,
    clock: Clock | None = None,
    service: str = "service",
) -> int:
    """Call predicate until it returns True or the policy is exhausted.

    The clock sleeps ``policy.interval`` between attempts and never after the
    final one, so a service ready on attempt k costs (k - 1) intervals.

    Args:
        predicate: Readiness check
        policy: Attempt budget and interval
        clock: Clock used for waiting
        service: Name used in log lines and errors

    Returns:
        Number of attempts made

    Raises:
        ReadinessTimeoutError: If the service never became ready
    """
    clock = clock or SystemClock()

    for attempt in range(1, policy.max_attempts + 1):
        if predicate():
            logger.debug(f"{service} ready after {attempt} attempt(s)")
            return attempt

        logger.debug(f"{service} not ready (attempt {attempt}/{policy.max_attempts})")
        if attempt < policy.max_attempts:
            clock.sleep(policy.interval)

    raise ReadinessTimeoutError(
        f"{service} not ready after {policy.max_attempts} attempts",
        service=service,
        attempts=policy.max_attempts,
    )
