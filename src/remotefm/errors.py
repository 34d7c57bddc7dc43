"""Exception types raised inside the remote file operation engine."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .session import CommandResult

class ErrorKind(Enum):
    """Classification carried by every failed :class:`OperationResult`."""

    CANCELLED = "cancelled"
    SAFETY_VIOLATION = "safety-violation"
    REMOTE_COMMAND_FAILURE = "remote-command-failure"
    TRANSFER_FAILURE = "transfer-failure"
    OPERATION_IN_PROGRESS = "operation-in-progress"
    INVALID_REQUEST = "invalid-request"
    UNEXPECTED = "unexpected"

class ConnectionLostError(Exception):
    """The transport to the remote host failed.

    Not a :class:`FileOperationError`; it propagates through every public
    engine and navigation call.
    """

class FileOperationError(Exception):
    """Exception raised for file operation errors."""

    kind = ErrorKind.UNEXPECTED

class OperationCancelledError(FileOperationError):
    """Raised at a checkpoint once the current operation has been cancelled."""

    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "cancelled") -> None:
        super().__init__(message)

class SafetyViolationError(FileOperationError):
    """A requested operation would destroy data or recurse into itself."""

    kind = ErrorKind.SAFETY_VIOLATION

class RemoteCommandError(FileOperationError):
    """A fast-path shell command exited non-zero or was rejected."""

    kind = ErrorKind.REMOTE_COMMAND_FAILURE

    def __init__(self, message: str, result: Optional["CommandResult"] = None) -> None:
        super().__init__(message)
        self.result = result

class TransferError(FileOperationError):
    """Reading or writing a transfer stream failed."""

    kind = ErrorKind.TRANSFER_FAILURE

class OperationInProgressError(FileOperationError):
    """Another mutating operation already holds the operation slot."""

    kind = ErrorKind.OPERATION_IN_PROGRESS

class InvalidRequestError(FileOperationError):
    kind = ErrorKind.INVALID_REQUEST
