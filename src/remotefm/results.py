"""Result value returned by every mutating engine call."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .errors import ErrorKind

CANCELLED_MESSAGE = "cancelled"

@dataclass(frozen=True)
class OperationResult:
    """Immutable outcome of an engine operation.

    Expected failures (safety violations, command failures, cancellation) are
    reported through this value instead of being raised.
    """

    is_success: bool
    error_message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    payload: Any = None

    @classmethod
    def success(cls, payload: Any = None) -> "OperationResult":
        return cls(True, payload=payload)

    @classmethod
    def failure(
        cls, message: str, kind: ErrorKind = ErrorKind.UNEXPECTED
    ) -> "OperationResult":
        return cls(False, error_message=message, error_kind=kind)

    @classmethod
    def cancelled(cls) -> "OperationResult":
        return cls(False, error_message=CANCELLED_MESSAGE, error_kind=ErrorKind.CANCELLED)

    @property
    def is_cancelled(self) -> bool:
        return self.error_kind is ErrorKind.CANCELLED
