"""
Retry policy shared by the capture and session components.

Backoff waits are interruptible: they return as soon as the cancel token is
set instead of sleeping out the full delay.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type

from .error_handler import OperationCancelled
from .logging_utils import setup_logger

logger = setup_logger("focusbot.retry", "logs/focusbot.log")

LINEAR = "linear"
EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff schedule.

    delay_for(n) is the wait owed after the n-th failed attempt (1-based):
    linear grows as n * base_delay, exponential as base_delay * 2**(n-1).
    Both are capped at max_delay.
    """
    max_attempts: int = 3
    base_delay: float = 2.0
    growth: str = LINEAR
    max_delay: float = 120.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.growth not in (LINEAR, EXPONENTIAL):
            raise ValueError(f"Unknown backoff growth: {self.growth}")

    def delay_for(self, attempt: int) -> float:
        attempt = max(1, int(attempt))
        if self.growth == EXPONENTIAL:
            delay = self.base_delay * (2 ** (attempt - 1))
        else:
            delay = self.base_delay * attempt
        return min(delay, self.max_delay)

    @classmethod
    def capture_default(cls) -> "RetryPolicy":
        return cls(max_attempts=3, base_delay=2.0, growth=LINEAR)

    @classmethod
    def init_default(cls) -> "RetryPolicy":
        return cls(max_attempts=3, base_delay=1.0, growth=EXPONENTIAL, max_delay=120.0)


@dataclass
class CaptureAttempt:
    """Bookkeeping for one retry of a capture-style operation."""
    number: int
    backoff: float = 0.0


def wait_interruptibly(cancel, delay: float) -> bool:
    """Sleep up to `delay` seconds; return False if `cancel` fired first."""
    if delay <= 0:
        return not (cancel is not None and cancel.is_set())
    if cancel is None:
        time.sleep(delay)
        return True
    return not cancel.wait(delay)


def retry_call(
    func: Callable[[], Any],
    policy: RetryPolicy,
    cancel=None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    give_up_on: Tuple[Type[BaseException], ...] = (),
    description: str = "operation",
) -> Any:
    """Call `func` until it succeeds or the policy's attempts run out.

    Exceptions in `give_up_on` propagate immediately. The last retryable
    exception is re-raised after exhaustion. Cancellation during a backoff
    raises OperationCancelled.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, policy.max_attempts + 1):
        if cancel is not None and cancel.is_set():
            raise OperationCancelled(f"{description} cancelled", component="retry", operation=description)
        try:
            return func()
        except give_up_on:
            raise
        except retry_on as e:
            last_error = e
            if attempt >= policy.max_attempts:
                break
            delay = policy.delay_for(attempt)
            logger.warning(f"{description} failed (attempt {attempt}/{policy.max_attempts}): {e}; retrying in {delay:.1f}s")
            if not wait_interruptibly(cancel, delay):
                raise OperationCancelled(f"{description} cancelled", component="retry", operation=description)

    logger.error(f"{description} failed after {policy.max_attempts} attempts")
    assert last_error is not None
    raise last_error
