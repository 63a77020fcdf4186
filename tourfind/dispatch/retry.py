"""
Retry primitive with capped exponential backoff.

The first attempt runs synchronously. Each failed attempt schedules the
next one after

    min(max_interval_ms, base_interval_ms * multiplier ** (attempt - 1))

until max_attempts is reached. on_complete(success) fires exactly once.
An operation counts as failed when it returns a falsy value or raises.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger

from tourfind.config import DispatchConfig


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_interval_ms: int = 100
    max_interval_ms: int = 1000
    multiplier: float = 2.0

    @classmethod
    def from_config(cls, config: DispatchConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            base_interval_ms=config.base_interval_ms,
            max_interval_ms=config.max_interval_ms,
            multiplier=config.multiplier,
        )

    def delay_after(self, attempt: int) -> float:
        """Delay before the attempt following `attempt` (1-based)."""
        return min(self.max_interval_ms, self.base_interval_ms * self.multiplier ** (attempt - 1))


class RetryHandle:
    """State of one retry run."""

    def __init__(self, description: str):
        self.description = description
        self.attempts = 0
        self.done = False
        self.succeeded = False
        self._pending = None

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self.done = True


def retry_with_backoff(
    scheduler,
    operation: Callable[[], object],
    policy: RetryPolicy = RetryPolicy(),
    on_complete: Optional[Callable[[bool], None]] = None,
    description: str = "operation",
) -> RetryHandle:
    """
    Run an operation until it succeeds or attempts run out.

    Args:
        scheduler: Anything with call_later(delay_ms, callback)
        operation: Callable returning truthy on success
        policy: Attempt count and backoff intervals
        on_complete: Called once with True/False when the run finishes
        description: Used in log messages

    Returns:
        RetryHandle (cancel() stops further attempts without calling on_complete)
    """
    handle = RetryHandle(description)

    def finish(success: bool) -> None:
        handle.done = True
        handle.succeeded = success
        handle._pending = None
        if on_complete is not None:
            on_complete(success)

    def attempt() -> None:
        if handle.done:
            return
        handle.attempts += 1
        try:
            ok = bool(operation())
        except Exception as e:
            logger.debug(f"{description} attempt {handle.attempts} raised: {e}")
            ok = False

        if ok:
            finish(True)
            return
        if handle.attempts >= policy.max_attempts:
            logger.debug(f"{description} failed after {handle.attempts} attempts")
            finish(False)
            return

        delay = policy.delay_after(handle.attempts)
        logger.debug(f"{description} attempt {handle.attempts} failed, retrying in {delay:.0f}ms")
        handle._pending = scheduler.call_later(delay, attempt)

    attempt()
    return handle
