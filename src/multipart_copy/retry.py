"""Exponential backoff with jitter for storage backend calls."""

import functools
import random
import time
from dataclasses import dataclass
from typing import Callable, Tuple, Type

from multipart_copy.exceptions import NonRetryableError, RetryableError
from multipart_copy.logger import get_logger

logger = get_logger(__name__)


def exponential_backoff_with_jitter(
    max_attempts: int = 5,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (RetryableError,),
) -> Callable:
    """Decorator implementing exponential backoff with full jitter.

    sleep = random(0, min(max_delay, base_delay * 2^attempt))
    """
    max_attempts = max(1, max_attempts)

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except NonRetryableError:
                    raise
                except retryable_exceptions as e:
                    if attempt == max_attempts - 1:
                        logger.error(
                            "All %d attempts exhausted for %s",
                            max_attempts,
                            func.__name__,
                            exc_info=True,
                        )
                        raise
                    delay = random.uniform(
                        0, min(max_delay, base_delay * (2**attempt))
                    )
                    logger.warning(
                        "Attempt %d/%d for %s failed: %s. Retrying in %.2fs",
                        attempt + 1,
                        max_attempts,
                        func.__name__,
                        str(e),
                        delay,
                    )
                    time.sleep(delay)

        return wrapper

    return decorator


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings applied to every call a backend makes."""

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 60.0

    @classmethod
    def from_config(cls, config) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_retry_attempts,
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
        )

    def call(self, func: Callable, *args, **kwargs):
        """Invoke ``func`` under this policy."""
        wrapped = exponential_backoff_with_jitter(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
        )(func)
        return wrapped(*args, **kwargs)
