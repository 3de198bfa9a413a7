from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar
import asyncio

import structlog
from pydantic import BaseModel, ConfigDict

from agent_runtime.domain.exceptions import (
    EmptyContextError,
    MaxRetriesExceeded,
    RuntimeConfigurationError,
)
from agent_runtime.infrastructure.observability.logging import agent_logger

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Wiring mistakes never heal on their own
NON_RETRYABLE: Tuple[Type[BaseException], ...] = (RuntimeConfigurationError, EmptyContextError)


class RetryPolicy(BaseModel):
    """Exponential backoff schedule.

    ``max_retries`` caps the number of retries after the first attempt and
    ``max_total_delay_ms`` caps the accumulated backoff; ``None`` leaves
    that dimension unbounded. The total-delay check happens before each
    sleep, so the accumulated wait can exceed the cap by at most one
    interval.
    """
    model_config = ConfigDict(frozen=True)

    initial_delay_ms: float = 1000
    multiplier: float = 2
    max_retries: Optional[int] = None
    max_total_delay_ms: Optional[float] = None

    @property
    def unbounded(self) -> bool:
        return self.max_retries is None and self.max_total_delay_ms is None


async def retry_async(
    attempt: Callable[[], Awaitable[Optional[T]]],
    policy: RetryPolicy,
    operation: str = "generation",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run ``attempt`` until it returns a value other than ``None``.

    Exceptions from ``attempt`` are logged and retried, except configuration
    errors which propagate immediately. ``sleep`` receives seconds.
    """
    delay_ms = policy.initial_delay_ms
    total_delay_ms = 0.0
    attempts = 0
    last_error: Optional[Exception] = None

    while True:
        attempts += 1
        try:
            result = await attempt()
            if result is not None:
                return result
            last_error = None
            logger.debug("Unusable model output", operation=operation, attempt=attempts)
        except NON_RETRYABLE:
            raise
        except Exception as e:
            last_error = e
            logger.error("Generation attempt failed", operation=operation, attempt=attempts, error=str(e))

        retries_spent = policy.max_retries is not None and attempts > policy.max_retries
        delay_spent = policy.max_total_delay_ms is not None and total_delay_ms > policy.max_total_delay_ms
        if retries_spent or delay_spent:
            raise MaxRetriesExceeded(
                f"{operation} gave up after {attempts} attempts",
                attempts=attempts,
                total_delay_ms=total_delay_ms,
                last_error=last_error
            ) from last_error

        agent_logger.log_generation_attempt(
            operation=operation,
            attempt=attempts,
            delay_ms=delay_ms,
            error=str(last_error) if last_error else None
        )
        await sleep(delay_ms / 1000)
        total_delay_ms += delay_ms
        delay_ms *= policy.multiplier
