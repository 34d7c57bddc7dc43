"""Pure helpers for resolving and comparing remote POSIX paths."""

from __future__ import annotations

import logging
import posixpath
from typing import List, Optional

logger = logging.getLogger(__name__)

HOME_MARKER = "~"
ROOT = "/"

def expand_home(path: str, home: Optional[str]) -> str:
    """Substitute every ``~`` in *path* with the session's home directory.

    The substitution is textual, the same way ``~``-relative names come back
    from an earlier listing.
    """
    if not path or not home:
        return path
    return path.replace(HOME_MARKER, home)

def normalize_segments(path: str) -> str:
    """Collapse ``.``/``..`` segments lexically and return an absolute path."""
    parts: List[str] = []
    for part in path.split("/"):
        if not part or part == ".":
            continue
        if part == "..":
            if parts:
                parts.pop()
        else:
            parts.append(part)
    return ROOT + "/".join(parts) if parts else ROOT

def resolve_path(path: Optional[str], home: Optional[str] = None) -> str:
    """Turn a relative, ``~`` or ``..`` laden path into an absolute remote path.

    Never raises: malformed input degrades to ``/``.
    """
    try:
        if not path or path == HOME_MARKER:
            return home or ROOT

        if HOME_MARKER in path:
            path = expand_home(path, home)

        if ".." in path:
            return normalize_segments(path)

        if not path.startswith(ROOT):
            path = ROOT + path
        return path
    except Exception as exc:
        logger.warning(f"Could not resolve path {path!r}, falling back to /: {exc}")
        return ROOT

def parent_path(path: str) -> str:
    """Return the parent directory of *path*; the parent of ``/`` is ``/``."""
    if not path or path in (ROOT, HOME_MARKER):
        return ROOT
    return normalize_segments(path.rstrip("/") + "/..")

def join_remote(directory: str, name: str) -> str:
    """Join a remote directory and a child name without doubling slashes."""
    if not directory:
        return ROOT + name
    return directory.rstrip("/") + "/" + name if directory != ROOT else ROOT + name

def basename(path: str) -> str:
    return posixpath.basename(path.rstrip("/"))

def is_nested_path(candidate: str, ancestor: str) -> bool:
    """Return ``True`` when *candidate* equals or lies below *ancestor*.

    The comparison is done on whole path segments, so ``/a/bc`` is not
    considered nested under ``/a/b``.
    """
    candidate_parts = normalize_segments(candidate).strip("/").split("/")
    ancestor_parts = normalize_segments(ancestor).strip("/").split("/")
    if ancestor_parts == [""]:
        return True
    return candidate_parts[: len(ancestor_parts)] == ancestor_parts

def is_protected_path(path: Optional[str], home: Optional[str] = None) -> bool:
    """Paths that must never be the target of a delete."""
    if path is None:
        return True
    stripped = path.strip()
    if stripped in ("", ROOT, HOME_MARKER):
        return True
    if normalize_segments(stripped) == ROOT:
        return True
    if home and normalize_segments(stripped) == normalize_segments(home):
        return True
    return False
