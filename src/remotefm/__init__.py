"""Public interface for the remotefm package."""

from .cancellation import CancellationSource, CancellationToken, OperationSlot
from .config import Config
from .connection import SFTPSession
from .engine import FileOperationEngine
from .errors import ConnectionLostError, ErrorKind, FileOperationError
from .events import EngineEvents, ListingSink
from .fileops import FileEntry
from .navigation import NavigationManager, NavigationState, PathCompleter
from .paths import resolve_path
from .results import OperationResult
from .service import AsyncRemoteBrowser, OperationHandle
from .session import CommandResult, RemoteSession

__all__ = [
    "AsyncRemoteBrowser",
    "CancellationSource",
    "CancellationToken",
    "CommandResult",
    "Config",
    "ConnectionLostError",
    "EngineEvents",
    "ErrorKind",
    "FileEntry",
    "FileOperationEngine",
    "FileOperationError",
    "ListingSink",
    "NavigationManager",
    "NavigationState",
    "OperationHandle",
    "OperationResult",
    "OperationSlot",
    "PathCompleter",
    "RemoteSession",
    "SFTPSession",
    "resolve_path",
]
