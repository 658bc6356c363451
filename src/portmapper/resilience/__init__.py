from __future__ import annotations

from portmapper.resilience.retry_policy import (
    DEFAULT_BACKOFF_BASE_MS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    RetryExecutor,
    RetryPolicy,
    is_transient,
)

__all__ = [
    "DEFAULT_BACKOFF_BASE_MS",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_REQUEST_TIMEOUT_SECONDS",
    "RetryExecutor",
    "RetryPolicy",
    "is_transient",
]
