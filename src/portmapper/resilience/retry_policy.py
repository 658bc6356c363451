"""Bounded retry loop for store calls.

Only deadline failures are retried. Each attempt runs under its own timeout
and the sleep between attempts doubles with the attempt number.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from portmapper.exceptions import RetriesExhaustedError, StoreTimeoutError
from portmapper.observability.events import AttemptOutcome, EventSink, RegistryEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 11
DEFAULT_REQUEST_TIMEOUT_SECONDS = 5.0
DEFAULT_BACKOFF_BASE_MS = 1


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Configuration for retrying store calls."""

    max_retries: int = DEFAULT_MAX_RETRIES
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    backoff_base_ms: int = DEFAULT_BACKOFF_BASE_MS
    # None leaves the exponential growth uncapped
    max_backoff_ms: int | None = None

    def delay_seconds(self, attempt: int) -> float:
        """Sleep after failed ``attempt`` (1-indexed): ``base * 2**attempt`` ms."""
        delay_ms = self.backoff_base_ms * (2 ** attempt)
        if self.max_backoff_ms is not None:
            delay_ms = min(delay_ms, self.max_backoff_ms)
        return delay_ms / 1000.0


def is_transient(error: BaseException) -> bool:
    """Deadline failures are worth retrying; anything else is terminal."""
    return isinstance(error, (asyncio.TimeoutError, TimeoutError, StoreTimeoutError))


class RetryExecutor:
    """Execute a store call with the bounded retry policy."""

    def __init__(self, policy: RetryPolicy, sink: EventSink | None = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep) -> None:
        self._policy = policy
        self._max_retries = max(1, int(policy.max_retries))
        self._sink = sink
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def execute(
        self,
        operation: str,
        func: Callable[[], Awaitable[T]],
        *,
        service_name: str | None = None,
        port: int | None = None,
    ) -> T:
        """Run ``func`` until it succeeds, fails terminally or retries run out.

        Raises:
            RetriesExhaustedError: every attempt hit the deadline.
            Exception: the first non-timeout error, unchanged.
        """
        last_exc: BaseException | None = None
        for attempt in range(1, self._max_retries + 1):
            try:
                result = await asyncio.wait_for(func(), timeout=self._policy.request_timeout_seconds)
            except Exception as exc:  # noqa: BLE001
                if not is_transient(exc):
                    await self._emit(operation, service_name, port, attempt, AttemptOutcome.FAILED, exc)
                    raise
                last_exc = exc
                await self._emit(operation, service_name, port, attempt, AttemptOutcome.RETRY, exc)
                if attempt < self._max_retries:
                    await self._sleep(self._policy.delay_seconds(attempt))
                continue
            await self._emit(operation, service_name, port, attempt, AttemptOutcome.SUCCESS)
            return result

        error = RetriesExhaustedError(
            data=f"{operation} gave up after {self._max_retries} attempts",
            cause=last_exc,
        )
        await self._emit(operation, service_name, port, self._max_retries, AttemptOutcome.EXHAUSTED, error)
        raise error

    async def _emit(self, operation: str, service_name: str | None, port: int | None,
                    attempt: int, outcome: AttemptOutcome, error: BaseException | None = None) -> None:
        if self._sink is None:
            return
        event = RegistryEvent(
            operation=operation,
            service_name=service_name,
            port=port,
            attempt=attempt,
            outcome=outcome,
            error=None if error is None else (str(error) or type(error).__name__),
        )
        try:
            await self._sink.emit(event)
        except Exception:
            logger.exception("Event sink failed for %s", operation)
