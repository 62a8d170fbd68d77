"""Retry handler for calls to the orchestrator's HTTP APIs.

Only transport is retried here. Handler functions are never retried locally;
the orchestrator owns that policy.
"""
import asyncio
import logging
import random
from typing import Any, Callable, Coroutine, Optional, Tuple, Type, TypeVar

import httpx

from ..core.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryConfig:
    """Configuration for retry behavior"""
    def __init__(
        self,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        retryable_errors: Optional[Tuple[Type[BaseException], ...]] = None,
        retryable_status_codes: Optional[Tuple[int, ...]] = None
    ):
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.retryable_errors = retryable_errors or (
            httpx.TransportError,
            asyncio.TimeoutError,
            ConnectionError,
        )
        self.retryable_status_codes = retryable_status_codes or (
            429,  # Too Many Requests
            500,  # Internal Server Error
            502,  # Bad Gateway
            503,  # Service Unavailable
            504   # Gateway Timeout
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryConfig":
        return cls(
            max_retries=settings.RETRY_MAX_ATTEMPTS,
            initial_delay=settings.RETRY_INITIAL_DELAY,
            max_delay=settings.RETRY_MAX_DELAY,
        )


class RetryHandler:
    """Exponential backoff with jitter around an async call"""

    def __init__(self, config: Optional[RetryConfig] = None, sleep: Callable[[float], Coroutine[Any, Any, None]] = asyncio.sleep):
        self.config = config or RetryConfig()
        self._sleep = sleep

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay before next retry attempt"""
        delay = min(
            self.config.initial_delay * (self.config.exponential_base ** (attempt - 1)),
            self.config.max_delay
        )

        if self.config.jitter:
            # Spread retries from concurrent senders
            delay += random.uniform(0, delay * 0.1)

        return delay

    def is_retryable_error(self, error: BaseException) -> bool:
        """Check if error is retryable"""
        if isinstance(error, httpx.HTTPStatusError):
            return error.response.status_code in self.config.retryable_status_codes
        return isinstance(error, self.config.retryable_errors)

    async def execute_with_retry(
        self,
        func: Callable[..., Coroutine[Any, Any, T]],
        *args,
        **kwargs
    ) -> T:
        """Execute ``func``, retrying retryable failures"""
        name = getattr(func, "__name__", "call")
        for attempt in range(1, self.config.max_attempts + 1):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if not self.is_retryable_error(e) or attempt >= self.config.max_attempts:
                    logger.error(f"{name} failed after {attempt} attempt(s): {e}")
                    raise

                delay = self.calculate_delay(attempt)
                logger.warning(
                    f"Retryable error on attempt {attempt}/{self.config.max_attempts} of {name}: {e}. "
                    f"Retrying in {delay:.2f} seconds..."
                )
                await self._sleep(delay)

        raise RuntimeError(f"Max retry attempts ({self.config.max_attempts}) exceeded")
