"""
RPC retry policy.

Provides bounded exponential-backoff retry for chain node RPC calls.
Storage calls never go through here.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from loguru import logger

from chain_indexer.config.settings import Settings
from chain_indexer.utils.exceptions import RETRYABLE

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry schedule for one remote call.

    The k-th retry (k >= 1) waits min(initial_delay * multiplier**(k-1), max_delay).
    """

    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    max_attempts: int = 3

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")

    def delay_for(self, retry_number: int) -> float:
        """Delay before the given retry (1-based)."""
        if retry_number < 1:
            raise ValueError("retry_number is 1-based")
        return min(
            self.initial_delay * self.multiplier ** (retry_number - 1),
            self.max_delay,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        """Build the RPC policy from application settings."""
        return cls(
            initial_delay=settings.rpc_initial_delay,
            multiplier=settings.rpc_backoff_multiplier,
            max_delay=settings.rpc_max_delay,
            max_attempts=settings.rpc_max_attempts,
        )


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = RETRYABLE,
    operation_name: str = "RPC call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Execute remote call with retry logic.

    Args:
        operation: Factory returning a fresh awaitable per attempt
        policy: Retry schedule
        retry_on: Exception types that may be retried
        operation_name: Operation name for logging
        sleep: Sleep function (injectable for tests)

    Returns:
        Result of the call

    Raises:
        The last error, unmodified, once attempts are exhausted.
        Errors outside ``retry_on`` propagate on the first failure.
    """
    attempt = 1
    while True:
        try:
            result = await operation()
        except retry_on as e:
            if attempt >= policy.max_attempts:
                logger.error(
                    f"{operation_name} failed after {policy.max_attempts} attempts: {e}"
                )
                raise

            delay = policy.delay_for(attempt)
            logger.warning(
                f"{operation_name} failed on attempt {attempt}/{policy.max_attempts}: {e}. "
                f"Retrying in {delay}s..."
            )
            await sleep(delay)
            attempt += 1
            continue

        if attempt > 1:
            logger.success(f"{operation_name} succeeded on attempt {attempt}")
        return result
