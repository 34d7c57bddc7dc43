"""Interface of the remote session consumed by the engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Protocol

from .fileops import FileEntry

TransferCallback = Callable[[int, int], None]

@dataclass(frozen=True)
class CommandResult:
    """Exit status and captured output of a remote shell command."""

    exit_status: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_status == 0

    def describe(self) -> str:
        detail = (self.stderr or self.stdout).strip()
        return f"exit status {self.exit_status}" + (f": {detail}" if detail else "")

class RemoteSession(Protocol):
    """A connected remote host, owned by the caller.

    File-transfer primitives report missing paths as :class:`FileNotFoundError`
    and denied access as :class:`PermissionError`. Transport failures are
    raised as :class:`remotefm.errors.ConnectionLostError`.
    """

    @property
    def home_directory(self) -> Optional[str]:
        ...

    def list_directory(self, path: str) -> Iterator[FileEntry]:
        ...

    def stat(self, path: str) -> FileEntry:
        ...

    def exists(self, path: str) -> bool:
        ...

    def upload_stream(
        self, local_path: str, remote_path: str, callback: Optional[TransferCallback] = None
    ) -> None:
        ...

    def download_stream(
        self, remote_path: str, local_path: str, callback: Optional[TransferCallback] = None
    ) -> None:
        ...

    def create_directory(self, path: str) -> None:
        ...

    def delete_file(self, path: str) -> None:
        ...

    def delete_empty_directory(self, path: str) -> None:
        ...

    def rename(self, old_path: str, new_path: str) -> None:
        ...

    def run_command(self, command: str) -> CommandResult:
        ...
