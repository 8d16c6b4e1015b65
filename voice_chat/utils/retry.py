"""Retry with exponential backoff for upstream calls."""

import time
from typing import Callable, TypeVar
import structlog


logger = structlog.get_logger()

T = TypeVar("T")


def call_with_retry(
    func: Callable[[], T],
    should_retry: Callable[[Exception], bool],
    max_retries: int = 1,
    initial_backoff: float = 0.5,
    backoff_multiplier: float = 2.0,
    max_backoff: float = 5.0,
    description: str = "upstream call",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``func``, retrying transient failures.

    Args:
        func: Zero-argument callable performing the request
        should_retry: Decides whether a raised exception is transient
        max_retries: Extra attempts after the first one
        initial_backoff: Delay before the first retry, in seconds
        backoff_multiplier: Factor applied to the delay after each retry
        max_backoff: Upper bound for the delay
        description: Name used in log events
        sleep: Sleep function, replaceable in tests

    Returns:
        Whatever ``func`` returns

    Raises:
        The last exception raised by ``func`` once retries are exhausted or
        the failure is not transient
    """
    backoff = initial_backoff
    attempt = 0
    while True:
        try:
            return func()
        except Exception as e:
            if attempt >= max_retries or not should_retry(e):
                raise
            attempt += 1
            wait_time = min(backoff, max_backoff)
            logger.warning(
                f"{description} failed, retrying",
                attempt=attempt,
                max_retries=max_retries,
                wait_seconds=wait_time,
                error=str(e),
            )
            if wait_time > 0:
                sleep(wait_time)
            backoff *= backoff_multiplier
