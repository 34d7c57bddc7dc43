"""Local and remote filesystem helper utilities for remotefm."""

from __future__ import annotations

import os
import stat
import zipfile
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Tuple

import paramiko

from .paths import join_remote

if TYPE_CHECKING:
    from .session import RemoteSession

SPECIAL_NAMES = (".", "..")

@dataclass(frozen=True)
class FileEntry:
    """Light weight description of a directory entry."""

    name: str
    is_dir: bool
    size: int = 0
    modified: float = 0.0

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("File name cannot be empty")
        if self.size < 0:
            object.__setattr__(self, "size", 0)

@dataclass
class TransferBatch:
    """Bookkeeping for one archive-batched upload."""

    local_paths: List[str]
    archive_name: str
    remote_archive_path: str
    local_archive_path: str = ""
    members: List[str] = field(default_factory=list)

def stat_isdir(attr: paramiko.SFTPAttributes) -> bool:
    """Return ``True`` when the attribute represents a directory."""

    return bool(attr.st_mode and stat.S_ISDIR(attr.st_mode))

def entry_from_attr(attr: paramiko.SFTPAttributes, name: Optional[str] = None) -> FileEntry:
    """Build a :class:`FileEntry` from paramiko attributes."""
    return FileEntry(
        name=name or attr.filename,
        is_dir=stat_isdir(attr),
        size=attr.st_size or 0,
        modified=attr.st_mtime or 0.0,
    )

def walk_remote(
    session: "RemoteSession", root: str
) -> Iterable[Tuple[str, List[str], List[str]]]:
    """Yield a remote directory tree similar to :func:`os.walk`.

    Uses an explicit stack instead of recursion; the order is the same
    top-down order a recursive walk would produce.
    """
    stack = [root]
    while stack:
        current = stack.pop()
        dirs: List[str] = []
        files: List[str] = []
        for entry in session.list_directory(current):
            if entry.name in SPECIAL_NAMES:
                continue
            if entry.is_dir:
                dirs.append(entry.name)
            else:
                files.append(entry.name)
        yield current, dirs, files
        for directory in reversed(dirs):
            stack.append(join_remote(current, directory))

def normalize_local_path(path: Optional[str]) -> str:
    """Expand user and resolve an absolute local filesystem path."""
    expanded = os.path.expanduser(path or "/")
    return os.path.abspath(expanded)

def format_size(size_bytes: int) -> str:
    """Format file size for display."""
    if size_bytes < 0:
        return "-"
    if size_bytes < 1024:
        return f"{size_bytes} B"

    value = float(size_bytes)
    for unit in ("KB", "MB", "GB", "TB", "PB"):
        value /= 1024.0
        if value < 1024.0:
            return f"{value:.1f} {unit}" if value < 10 else f"{value:.0f} {unit}"
    return f"{value:.1f} EB"

def build_upload_archive(
    local_paths: Iterable[str],
    archive_path: str,
    checkpoint: Optional[Callable[[], None]] = None,
) -> List[str]:
    """Pack files and folders into a zip archive at *archive_path*.

    Folders keep their relative structure under their own name and every
    directory gets an explicit entry so that empty folders survive
    extraction. *checkpoint* is called between members and may raise to
    abort. Returns the archive member names in write order.
    """
    members: List[str] = []
    with zipfile.ZipFile(
        archive_path, "w", zipfile.ZIP_DEFLATED, strict_timestamps=False
    ) as zf:
        for local_path in local_paths:
            local_path = os.path.abspath(local_path)
            top = os.path.basename(local_path.rstrip(os.sep))

            if not os.path.isdir(local_path):
                if checkpoint:
                    checkpoint()
                zf.write(local_path, top)
                members.append(top)
                continue

            for dirpath, dirnames, filenames in os.walk(local_path):
                dirnames.sort()
                rel = os.path.relpath(dirpath, local_path)
                arc_dir = top if rel == "." else "/".join([top] + rel.split(os.sep))

                if checkpoint:
                    checkpoint()
                zf.write(dirpath, arc_dir + "/")
                members.append(arc_dir + "/")

                for name in sorted(filenames):
                    if checkpoint:
                        checkpoint()
                    zf.write(os.path.join(dirpath, name), f"{arc_dir}/{name}")
                    members.append(f"{arc_dir}/{name}")
    return members
