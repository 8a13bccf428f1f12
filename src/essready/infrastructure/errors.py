"""Error taxonomy shared by the health-check client and the validation runner.

Every error except :class:`DiscoveryError` is absorbed at a component
boundary and turned into data (a result field or a validation record).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    NETWORK = "ESSREADY_NETWORK"
    NOT_FOUND = "ESSREADY_NOT_FOUND"
    PARSE = "ESSREADY_PARSE"
    UNEXPECTED_STATUS = "ESSREADY_UNEXPECTED_STATUS"
    ROUTINE = "ESSREADY_ROUTINE"
    DISCOVERY = "ESSREADY_DISCOVERY"


@dataclass(frozen=True)
class ErrorContext:
    code: str
    fields: dict[str, Any] = field(default_factory=dict)


class ReadinessError(Exception):
    """Base error carrying a machine code and a human-readable message."""

    code: ErrorCode = ErrorCode.ROUTINE

    def __init__(self, message: str, *, hint: str | None = None, **fields: Any) -> None:
        super().__init__(message)
        self.user_message = message
        self.hint = hint
        self.context = ErrorContext(code=self.code.value, fields=dict(fields))

    @property
    def retryable(self) -> bool:
        return False


class NetworkError(ReadinessError):
    """Transient transport failure; drives the probe retry loop."""

    code = ErrorCode.NETWORK

    @property
    def retryable(self) -> bool:
        return True


class NotFoundError(ReadinessError):
    code = ErrorCode.NOT_FOUND


class ParseError(ReadinessError):
    code = ErrorCode.PARSE


class UnexpectedStatusError(ReadinessError):
    code = ErrorCode.UNEXPECTED_STATUS

    def __init__(self, status_code: int) -> None:
        super().__init__(
            f"Unexpected HTTP status code: {status_code}", status_code=status_code
        )
        self.status_code = status_code


class RoutineError(ReadinessError):
    code = ErrorCode.ROUTINE


class DiscoveryError(ReadinessError):
    """Instance list could not be obtained; the only run-aborting failure."""

    code = ErrorCode.DISCOVERY


__all__ = [
    "ErrorCode",
    "ErrorContext",
    "ReadinessError",
    "NetworkError",
    "NotFoundError",
    "ParseError",
    "UnexpectedStatusError",
    "RoutineError",
    "DiscoveryError",
]
