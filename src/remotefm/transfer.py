"""Client-mediated strategies built only on file-transfer primitives.

These are the slow paths: bytes travel through the local process. Tree
traversals use :func:`remotefm.fileops.walk_remote`, which keeps an explicit
worklist, so deeply nested remote trees do not grow the call stack.
"""

from __future__ import annotations

import logging
import os
import tempfile
from typing import TYPE_CHECKING, List, Optional, Tuple

from .cancellation import CancellationToken
from .errors import TransferError
from .fileops import format_size, walk_remote
from .paths import basename, join_remote
from .session import TransferCallback

if TYPE_CHECKING:
    from .events import EngineEvents
    from .session import RemoteSession

logger = logging.getLogger(__name__)

def progress_callback(
    events: Optional["EngineEvents"], token: CancellationToken, label: str
) -> TransferCallback:
    """Return a paramiko-style ``(transferred, total)`` callback.

    The callback doubles as a cancellation checkpoint inside a running
    transfer: raising from it aborts the stream.
    """

    def _callback(transferred: int, total: int) -> None:
        token.raise_if_cancelled()
        if events is not None and total > 0:
            events.progress(
                True,
                f"{label} ({format_size(transferred)} of {format_size(total)})",
                transferred,
                total,
            )

    return _callback

def _rebase(path: str, source_root: str, destination_root: str) -> str:
    relative = path[len(source_root):].lstrip("/")
    return join_remote(destination_root, relative) if relative else destination_root

def _remove_remote(session: "RemoteSession", path: str) -> None:
    try:
        session.delete_file(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning(f"Could not remove partial remote file {path}: {exc}")

def _remove_local(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning(f"Could not remove local file {path}: {exc}")

def copy_file_via_local(
    session: "RemoteSession",
    source: str,
    destination: str,
    token: CancellationToken,
    *,
    spool_dir: Optional[str] = None,
    events: Optional["EngineEvents"] = None,
) -> None:
    """Copy one remote file by downloading it to a spool file and uploading it.

    A write that is cancelled or fails removes the partial destination file.
    """
    token.raise_if_cancelled()
    fd, spool = tempfile.mkstemp(prefix="remotefm_spool_", dir=spool_dir)
    os.close(fd)
    name = basename(source)
    try:
        try:
            session.download_stream(
                source, spool, progress_callback(events, token, f"Reading {name}")
            )
        except OSError as exc:
            raise TransferError(f"Failed to read {source}: {exc}") from exc

        token.raise_if_cancelled()
        try:
            session.upload_stream(
                spool, destination, progress_callback(events, token, f"Writing {name}")
            )
        except Exception as exc:
            _remove_remote(session, destination)
            if isinstance(exc, OSError):
                raise TransferError(f"Failed to copy {source} to {destination}: {exc}") from exc
            raise
    finally:
        _remove_local(spool)

def mirror_tree(
    session: "RemoteSession",
    source: str,
    destination: str,
    token: CancellationToken,
    *,
    spool_dir: Optional[str] = None,
    events: Optional["EngineEvents"] = None,
) -> int:
    """Recreate the remote directory *source* at *destination*.

    Directories that already exist are reused, so a tree left half copied by
    an interrupted ``cp -R`` is completed. Returns the number of files copied.
    """
    source = source.rstrip("/") or "/"
    copied = 0
    try:
        for root, _dirs, files in walk_remote(session, source):
            token.raise_if_cancelled()
            target_root = _rebase(root, source, destination)
            if not session.exists(target_root):
                session.create_directory(target_root)
            for name in files:
                copy_file_via_local(
                    session,
                    join_remote(root, name),
                    join_remote(target_root, name),
                    token,
                    spool_dir=spool_dir,
                    events=events,
                )
                copied += 1
    except OSError as exc:
        raise TransferError(f"Failed to mirror {source} to {destination}: {exc}") from exc
    logger.debug(f"Mirrored {source} -> {destination} ({copied} files)")
    return copied

def remove_tree(session: "RemoteSession", path: str, token: CancellationToken) -> None:
    """Delete a remote directory and everything below it, one primitive at a time."""
    path = path.rstrip("/") or "/"
    directories: List[str] = []
    try:
        for root, _dirs, files in walk_remote(session, path):
            token.raise_if_cancelled()
            directories.append(root)
            for name in files:
                session.delete_file(join_remote(root, name))
        for directory in reversed(directories):
            token.raise_if_cancelled()
            session.delete_empty_directory(directory)
    except OSError as exc:
        raise TransferError(f"Failed to remove {path}: {exc}") from exc

def download_file(
    session: "RemoteSession",
    remote_path: str,
    local_path: str,
    token: CancellationToken,
    events: Optional["EngineEvents"] = None,
) -> None:
    """Stream one remote file to *local_path*, removing it again if that fails."""
    token.raise_if_cancelled()
    parent = os.path.dirname(local_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    try:
        session.download_stream(
            remote_path,
            local_path,
            progress_callback(events, token, f"Downloading {basename(remote_path)}"),
        )
    except Exception as exc:
        _remove_local(local_path)
        if isinstance(exc, OSError):
            raise TransferError(f"Failed to download {remote_path}: {exc}") from exc
        raise

def download_tree(
    session: "RemoteSession",
    remote_root: str,
    local_root: str,
    token: CancellationToken,
    events: Optional["EngineEvents"] = None,
) -> int:
    """Recreate a remote directory locally. Returns the number of files fetched."""
    remote_root = remote_root.rstrip("/") or "/"
    plan: List[Tuple[str, str]] = []
    try:
        os.makedirs(local_root, exist_ok=True)
        for root, dirs, files in walk_remote(session, remote_root):
            token.raise_if_cancelled()
            relative = root[len(remote_root):].lstrip("/")
            target_root = os.path.join(local_root, *relative.split("/")) if relative else local_root
            for name in dirs:
                os.makedirs(os.path.join(target_root, name), exist_ok=True)
            for name in files:
                plan.append((join_remote(root, name), os.path.join(target_root, name)))
    except OSError as exc:
        raise TransferError(f"Failed to read remote tree {remote_root}: {exc}") from exc

    total = len(plan)
    for index, (remote_path, local_path) in enumerate(plan, start=1):
        if events is not None:
            events.progress(True, f"Downloading {basename(remote_path)}", index, total)
        download_file(session, remote_path, local_path, token)
    return total

def fallback_transfer_item(
    session: "RemoteSession",
    source: str,
    destination: str,
    is_cut: bool,
    token: CancellationToken,
    *,
    spool_dir: Optional[str] = None,
    events: Optional["EngineEvents"] = None,
) -> None:
    """Copy or move one item without the command channel.

    Directories are mirrored, files are spooled through the local process,
    and for a cut the original is removed afterwards.
    """
    token.raise_if_cancelled()
    try:
        info = session.stat(source)
    except OSError as exc:
        raise TransferError(f"Cannot read {source}: {exc}") from exc

    if info.is_dir:
        mirror_tree(session, source, destination, token, spool_dir=spool_dir, events=events)
    else:
        copy_file_via_local(
            session, source, destination, token, spool_dir=spool_dir, events=events
        )

    if not is_cut:
        return

    token.raise_if_cancelled()
    if info.is_dir:
        remove_tree(session, source, token)
    else:
        try:
            session.delete_file(source)
        except OSError as exc:
            raise TransferError(f"Copied {source} but could not remove it: {exc}") from exc
