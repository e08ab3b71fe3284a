"""
Retry Executor - bounded exponential backoff for registry submissions.

Up to max_retries + 1 attempts; the wait before retry n (0-based) is
base_delay * 2**n, giving 2, 4, 8, 16 seconds with the defaults.
Failures tagged with a non-recoverable ErrorKind are raised at once.
"""

import threading
import time
from typing import Callable, Optional, TypeVar

from truthminer.core.errors import RegistryError
from truthminer.utils.logger import get_logger

logger = get_logger("retry")

T = TypeVar("T")


class RetryExecutor:
    """Runs an operation with classified retries."""

    def __init__(
        self,
        max_retries: int = 4,
        base_delay: float = 2.0,
        sleep: Optional[Callable[[float], None]] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.stop_event = stop_event
        self._sleep = sleep or self._default_sleep

    def _default_sleep(self, seconds: float) -> None:
        # An Event wait doubles as an interruptible sleep
        if self.stop_event is not None:
            self.stop_event.wait(seconds)
        else:
            time.sleep(seconds)

    def delay_for(self, attempt: int) -> float:
        """Backoff before the retry following attempt number `attempt` (0-based)."""
        return self.base_delay * (2 ** attempt)

    def execute(self, operation: Callable[[], T], name: str = "operation") -> T:
        """
        Run operation until it succeeds or retries are exhausted.

        Raises:
            RegistryError: immediately for non-recoverable kinds
            Exception: the last failure once attempts are exhausted or
                the stop event is set during backoff
        """
        attempts = self.max_retries + 1
        attempt = 0
        while True:
            try:
                return operation()
            except RegistryError as e:
                if not e.recoverable:
                    logger.warning(f"{name} failed ({e.kind.value}), not retrying")
                    raise
                error = e
            except Exception as e:
                error = e

            if attempt == attempts - 1:
                logger.error(f"{name} failed after {attempts} attempts: {error}")
                raise error

            delay = self.delay_for(attempt)
            logger.warning(
                f"{name} attempt {attempt + 1}/{attempts} failed: {error}; retrying in {delay:.0f}s"
            )
            self._sleep(delay)
            if self.stop_event is not None and self.stop_event.is_set():
                logger.info(f"{name}: stop requested, abandoning retries")
                raise error
            attempt += 1
