"""Shared fixtures: a RemoteSession backed by a local directory tree."""

import os
import shlex
import shutil
import zipfile
from pathlib import Path
from typing import Callable, List, Optional, Set
from unittest import mock

import pytest

from remotefm.config import TransferConfig
from remotefm.engine import FileOperationEngine
from remotefm.events import EngineEvents, ListingSink
from remotefm.fileops import FileEntry
from remotefm.session import CommandResult

HOME = "/home/user"


class SandboxSession:
    """RemoteSession double rooted at a temporary directory.

    Remote paths map onto ``root``. The command channel understands the
    handful of shell commands the engine issues. Set ``commands_enabled``
    to False to force every command to fail, ``denied`` to make listings
    raise PermissionError, and ``on_chunk`` to run code between transfer
    chunks.
    """

    def __init__(self, root: Path, home: str = HOME, chunk_size: int = 4) -> None:
        self.root = root
        self._home = home
        self.chunk_size = chunk_size
        self.commands: List[str] = []
        self.listed: List[str] = []
        self.commands_enabled = True
        self.denied: Set[str] = set()
        self.on_chunk: Optional[Callable[[], None]] = None
        self.on_list: Optional[Callable[[str], None]] = None

    # -- test helpers ---------------------------------------------------

    def local(self, path: str) -> Path:
        return self.root / path.lstrip("/")

    def write(self, path: str, content: str = "") -> None:
        target = self.local(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)

    def mkdir(self, path: str) -> None:
        self.local(path).mkdir(parents=True, exist_ok=True)

    def read(self, path: str) -> str:
        return self.local(path).read_text()

    def has(self, path: str) -> bool:
        return self.local(path).exists()

    # -- RemoteSession --------------------------------------------------

    @property
    def home_directory(self) -> str:
        return self._home

    def list_directory(self, path: str):
        self.listed.append(path)
        if self.on_list:
            self.on_list(path)
        if path in self.denied:
            raise PermissionError(13, "Permission denied", path)
        target = self.local(path)
        if not target.exists():
            raise FileNotFoundError(2, "No such file", path)
        if not target.is_dir():
            raise NotADirectoryError(20, "Not a directory", path)
        for child in sorted(target.iterdir()):
            yield self._entry(child)

    def stat(self, path: str) -> FileEntry:
        target = self.local(path)
        if not target.exists():
            raise FileNotFoundError(2, "No such file", path)
        return self._entry(target)

    def exists(self, path: str) -> bool:
        return self.local(path).exists()

    def upload_stream(self, local_path, remote_path, callback=None) -> None:
        self._stream(Path(local_path), self.local(remote_path), callback)

    def download_stream(self, remote_path, local_path, callback=None) -> None:
        source = self.local(remote_path)
        if not source.exists():
            raise FileNotFoundError(2, "No such file", remote_path)
        self._stream(source, Path(local_path), callback)

    def create_directory(self, path: str) -> None:
        self.local(path).mkdir()

    def delete_file(self, path: str) -> None:
        self.local(path).unlink()

    def delete_empty_directory(self, path: str) -> None:
        self.local(path).rmdir()

    def rename(self, old_path: str, new_path: str) -> None:
        os.rename(self.local(old_path), self.local(new_path))

    def run_command(self, command: str) -> CommandResult:
        self.commands.append(command)
        if not self.commands_enabled:
            return CommandResult(-1, "", "command channel unavailable")

        tokens = shlex.split(command)
        try:
            if tokens[0] == "cd" and tokens[2] == "&&":
                return self._unzip(tokens[1], tokens[-1])
            if tokens[0] in ("mv", "cp"):
                return self._transfer(tokens[0], tokens[3:-1], tokens[-1])
            if tokens[0] == "rm":
                for path in tokens[3:]:
                    target = self.local(path)
                    if target.is_dir():
                        shutil.rmtree(target)
                    elif target.exists():
                        target.unlink()
                return CommandResult(0)
        except OSError as exc:
            return CommandResult(1, "", str(exc))
        return CommandResult(127, "", f"{tokens[0]}: command not found")

    # -- internals ------------------------------------------------------

    def _entry(self, target: Path) -> FileEntry:
        info = target.stat()
        return FileEntry(target.name, target.is_dir(), info.st_size, info.st_mtime)

    def _stream(self, source: Path, destination: Path, callback) -> None:
        total = source.stat().st_size
        transferred = 0
        with open(source, "rb") as src, open(destination, "wb") as dst:
            while True:
                chunk = src.read(self.chunk_size)
                if not chunk:
                    break
                dst.write(chunk)
                transferred += len(chunk)
                if self.on_chunk:
                    self.on_chunk()
                if callback:
                    callback(transferred, total)

    def _transfer(self, verb: str, sources: List[str], destination: str) -> CommandResult:
        target = self.local(destination)
        for source in sources:
            src = self.local(source)
            if not src.exists():
                return CommandResult(1, "", f"{verb}: cannot stat '{source}'")
            dest = target / src.name if target.is_dir() else target
            if verb == "mv":
                shutil.move(str(src), str(dest))
            elif src.is_dir():
                shutil.copytree(src, dest)
            else:
                shutil.copy2(src, dest)
        return CommandResult(0)

    def _unzip(self, directory: str, archive: str) -> CommandResult:
        target = self.local(directory)
        with zipfile.ZipFile(target / archive) as zf:
            zf.extractall(target)
        return CommandResult(0)


@pytest.fixture
def remote_root(tmp_path):
    root = tmp_path / "remote"
    (root / HOME.lstrip("/")).mkdir(parents=True)
    return root


@pytest.fixture
def session(remote_root):
    return SandboxSession(remote_root)


@pytest.fixture
def events():
    return EngineEvents(
        on_progress=mock.Mock(),
        on_log=mock.Mock(),
        on_clipboard_changed=mock.Mock(),
    )


@pytest.fixture
def listing():
    return ListingSink()


@pytest.fixture
def transfer_config(tmp_path):
    spool = tmp_path / "spool"
    spool.mkdir()
    return TransferConfig(temp_dir=str(spool))


@pytest.fixture
def engine(session, events, transfer_config):
    return FileOperationEngine(session, events=events, config=transfer_config)
