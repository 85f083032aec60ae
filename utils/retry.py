"""Retry helpers with capped exponential backoff."""
import time
from typing import Callable, Iterator, Optional, Tuple, Type
from loguru import logger
from config import settings


def backoff_delays(
    retries: int,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    factor: float = 2.0,
) -> Iterator[float]:
    """
    Yield the wait before each retry attempt.

    Example:
        >>> list(backoff_delays(4, base_delay=1, max_delay=5))
        [1, 2, 4, 5]
    """
    delay = base_delay
    for _ in range(retries):
        yield min(delay, max_delay)
        delay *= factor


def retry_call(
    func: Callable,
    *args,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs,
):
    """
    Call func, retrying on the given exception types.

    Args:
        func: Callable to invoke
        retry_on: Exception types treated as transient
        retries: Number of retries after the first attempt (defaults to settings.max_retries)
        base_delay: First backoff delay in seconds
        max_delay: Upper bound for a single delay
        sleep: Sleep function, replaceable in tests

    Returns:
        Whatever func returns

    Raises:
        The last transient error once retries are exhausted, or any
        non-transient error immediately.
    """
    retries = settings.max_retries if retries is None else retries
    base_delay = settings.retry_base_delay if base_delay is None else base_delay
    max_delay = settings.retry_max_delay if max_delay is None else max_delay

    delays = backoff_delays(retries, base_delay, max_delay)
    attempt = 0
    while True:
        attempt += 1
        try:
            return func(*args, **kwargs)
        except retry_on as e:
            delay = next(delays, None)
            if delay is None:
                raise
            logger.warning(f"Attempt {attempt} of {getattr(func, '__name__', func)} failed: {e}; retrying in {delay:.1f}s")
            sleep(delay)
