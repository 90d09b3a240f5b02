"""Bounded retry strategy for flaky local tool steps and HTTP calls."""

import time
import random
from typing import Callable, TypeVar, Optional, Tuple, Type
from oculus_deploy.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class RetryStrategy:
    """Retries an operation a bounded number of times.

    With the default ``backoff`` of 1.0 the delay between attempts is fixed;
    values above 1.0 grow it geometrically up to ``max_delay``.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        delay: float = 5.0,
        backoff: float = 1.0,
        max_delay: float = 60.0,
        jitter: bool = False,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize retry strategy.

        Args:
            max_attempts: Total number of attempts, including the first one
            delay: Delay in seconds before the second attempt
            backoff: Multiplier applied to the delay after each failure
            max_delay: Upper bound for a single delay
            jitter: Whether to add up to 10% random jitter to each delay
            retry_on: Exception types that trigger another attempt
            sleep: Function used to wait between attempts
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.delay = delay
        self.backoff = backoff
        self.max_delay = max_delay
        self.jitter = jitter
        self.retry_on = retry_on
        self.sleep = sleep
        self.attempts_made = 0

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """Determine if an error should trigger another attempt.

        Args:
            error: The exception that occurred
            attempt: Number of the attempt that just failed (1-indexed)

        Returns:
            True if the error is retryable and attempts remain
        """
        if attempt >= self.max_attempts:
            return False
        return isinstance(error, self.retry_on)

    def get_delay(self, attempt: int) -> float:
        """Calculate the wait after a failed attempt.

        Args:
            attempt: Number of the attempt that just failed (1-indexed)

        Returns:
            Delay in seconds before the next attempt
        """
        delay = min(self.delay * (self.backoff ** (attempt - 1)), self.max_delay)

        if self.jitter:
            delay += random.uniform(0, delay * 0.1)

        return delay

    def execute_with_retry(
        self,
        func: Callable[..., T],
        *args,
        description: Optional[str] = None,
        **kwargs
    ) -> T:
        """Execute a function with retry logic.

        Args:
            func: Function to execute
            *args: Positional arguments for the function
            description: Label used in log messages
            **kwargs: Keyword arguments for the function

        Returns:
            Result of the function call

        Raises:
            The last exception if all attempts are exhausted
        """
        label = description or getattr(func, '__name__', 'operation')
        self.attempts_made = 0

        for attempt in range(1, self.max_attempts + 1):
            self.attempts_made = attempt
            try:
                result = func(*args, **kwargs)
                if attempt > 1:
                    logger.info(f"{label} succeeded on attempt {attempt}/{self.max_attempts}")
                return result

            except Exception as e:
                if not self.should_retry(e, attempt):
                    if attempt >= self.max_attempts and isinstance(e, self.retry_on):
                        logger.error(f"{label} failed after {attempt} attempts")
                    raise

                delay = self.get_delay(attempt)
                logger.warning(
                    f"{label} attempt {attempt}/{self.max_attempts} failed: {e}. "
                    f"Retrying in {delay:.0f}s...",
                    extra={'attempt': attempt}
                )
                self.sleep(delay)

        # Unreachable: the final attempt either returns or raises
        raise RuntimeError(f"{label} exhausted retries")

