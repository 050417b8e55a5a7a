# ABOUTME: Exponential backoff retry decorator for event delivery to the notification sink.
# ABOUTME: Retries transient Redis/connection failures with tenacity and structured logging.

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

# Type variable for generic function decoration
F = TypeVar("F", bound=Callable[..., Any])

TRANSIENT_ERRORS = (
    RedisConnectionError,
    RedisTimeoutError,
    ConnectionError,
    TimeoutError,
)


def sink_retry(attempts: int = 5, max_wait: float = 30.0) -> Callable[[F], F]:
    """
    Retry decorator for sink deliveries with exponential backoff.

    - `attempts` tries in total
    - Wait: 0.5s min, `max_wait` max, exponential
    - Retries on: Redis connection/timeout errors, builtin ConnectionError/TimeoutError
    - Anything else is raised immediately

    Usage:
        @sink_retry(attempts=3)
        def push(event): ...

    Args:
        attempts: Total delivery attempts
        max_wait: Upper bound on a single backoff sleep in seconds

    Returns:
        Decorator wrapping a synchronous delivery function
    """
    retrying_decorator = retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=max_wait),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        before_sleep=before_sleep_log(logger, "WARNING"),
        reraise=True,
    )

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            @retrying_decorator
            def _retry_call() -> Any:
                try:
                    return func(*args, **kwargs)
                except TRANSIENT_ERRORS as e:
                    logger.warning(
                        f"Sink delivery failed in {func.__name__}: {type(e).__name__}: {e}"
                    )
                    raise

            return _retry_call()

        return wrapper  # type: ignore

    return decorator
