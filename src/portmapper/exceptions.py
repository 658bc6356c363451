from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PortmapperException(Exception):
    """Base class for portmapper exceptions with a canonical error shape."""

    code: int
    message: str
    data: Any | None = None
    cause: BaseException | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", (self.message,))
        if self.cause is not None:
            object.__setattr__(self, "__cause__", self.cause)
            object.__setattr__(self, "__suppress_context__", True)

    def __str__(self) -> str:
        if self.data is None:
            return self.message
        return f"{self.message}: {self.data}"

    def to_error_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "data": self.data}


@dataclass(frozen=True)
class ValidationError(PortmapperException):
    """Raised when a service record fails input validation."""

    code: int = 2000
    message: str = "Invalid service record"


@dataclass(frozen=True)
class InvalidNameError(ValidationError):
    """Raised when a service record lacks a name."""

    code: int = 2001
    message: str = "Service lacks name field"


@dataclass(frozen=True)
class InvalidPortError(ValidationError):
    """Raised when a service port is outside [1, 65535]."""

    code: int = 2002
    message: str = "Service port is outside valid range"


@dataclass(frozen=True)
class KeyNotFoundError(PortmapperException):
    """Raised by a store when the requested key does not exist."""

    code: int = 4000
    message: str = "Key not found"


@dataclass(frozen=True)
class StoreError(PortmapperException):
    """Raised when the backend store cannot satisfy a request."""

    code: int = 6000
    message: str = "Store error"


@dataclass(frozen=True)
class StoreTimeoutError(StoreError):
    """Raised when a store request exceeds its deadline."""

    code: int = 6001
    message: str = "Store request timed out"


@dataclass(frozen=True)
class StoreRequestError(StoreError):
    """Raised when the store rejects a request or the transport fails."""

    code: int = 6002
    message: str = "Store request failed"


@dataclass(frozen=True)
class RetriesExhaustedError(StoreError):
    """Raised when every attempt of a store operation timed out."""

    code: int = 6003
    message: str = "Retries exhausted"


@dataclass(frozen=True)
class ServiceDecodeError(StoreError):
    """Raised when a stored service value cannot be decoded."""

    code: int = 6004
    message: str = "Malformed service record"


class ConfigError(RuntimeError):
    """Raised when configuration loading fails."""
