"""Retry and timeout policy for calls to external collaborators.

Every ledger read/write and transcript fetch goes through
``RetryPolicy.call``: transient failures are retried with exponential
backoff, each attempt is bounded by a timeout, and exhaustion surfaces as
SourceUnavailable.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import gspread.exceptions
import structlog
from googleapiclient.errors import HttpError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from coach_ledger.errors import SourceUnavailable

logger = structlog.get_logger()

T = TypeVar("T")

# Exceptions that are retriable (transient failures)
RETRIABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    gspread.exceptions.APIError,
    HttpError,
)


class RetryPolicy:
    """Exponential backoff with a per-attempt timeout."""

    def __init__(
        self,
        attempts: int = 4,
        min_wait: float = 1.0,
        max_wait: float = 30.0,
        timeout: float = 30.0,
    ):
        """Initialize policy.

        Args:
            attempts: Total attempts including the first
            min_wait: Minimum backoff between attempts in seconds
            max_wait: Maximum backoff between attempts in seconds
            timeout: Per-attempt timeout in seconds
        """
        self.attempts = attempts
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Any) -> "RetryPolicy":
        return cls(
            attempts=settings.retry_attempts,
            min_wait=settings.retry_min_wait,
            max_wait=settings.retry_max_wait,
            timeout=settings.io_timeout_seconds,
        )

    async def call(
        self,
        source: str,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Call an async function under this policy.

        Non-retriable exceptions (including LedgerConflict) propagate
        unchanged after the first attempt.

        Args:
            source: Collaborator name used in logs and errors
            func: Async function to call
            *args: Positional arguments for func
            **kwargs: Keyword arguments for func

        Returns:
            Whatever func returns

        Raises:
            SourceUnavailable: When every attempt failed transiently
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=1, min=self.min_wait, max=self.max_wait),
            retry=retry_if_exception_type(RETRIABLE_EXCEPTIONS),
            before_sleep=self._log_retry(source),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await asyncio.wait_for(
                        func(*args, **kwargs), timeout=self.timeout
                    )
        except RetryError as e:
            last_err = e.last_attempt.exception() if e.last_attempt else None
            logger.error(
                "retry exhausted",
                source=source,
                attempts=self.attempts,
                last_error=str(last_err) if last_err else None,
            )
            raise SourceUnavailable(
                source,
                f"retry exhausted after {self.attempts} attempts: "
                f"{last_err or 'unknown error'}",
            ) from last_err
        # Unreachable: AsyncRetrying either returns or raises
        raise SourceUnavailable(source, "no attempt was made")

    @staticmethod
    def _log_retry(source: str) -> Callable[[Any], None]:
        def before_sleep(retry_state: Any) -> None:
            outcome = retry_state.outcome
            logger.info(
                "retrying external call",
                source=source,
                attempt=retry_state.attempt_number,
                error=str(outcome.exception()) if outcome else None,
            )

        return before_sleep


class NoRetry(RetryPolicy):
    """Single attempt without a timeout, for tests and dry runs."""

    def __init__(self) -> None:
        super().__init__(attempts=1, min_wait=0.0, max_wait=0.0)

    async def call(
        self,
        source: str,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        return await func(*args, **kwargs)
