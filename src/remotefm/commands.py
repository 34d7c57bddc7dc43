"""Shell command lines for the server-side fast path."""

from __future__ import annotations

import shlex
from typing import Sequence

def _quote_all(paths: Sequence[str]) -> str:
    return " ".join(shlex.quote(p) for p in paths)

def move_command(sources: Sequence[str], destination: str) -> str:
    """``mv`` one or more sources onto *destination*."""
    return f"mv -f -- {_quote_all(sources)} {shlex.quote(destination)}"

def copy_command(sources: Sequence[str], destination: str) -> str:
    """Recursive ``cp`` of one or more sources onto *destination*."""
    return f"cp -R -- {_quote_all(sources)} {shlex.quote(destination)}"

def transfer_command(sources: Sequence[str], destination: str, is_cut: bool) -> str:
    return move_command(sources, destination) if is_cut else copy_command(sources, destination)

def remove_command(paths: Sequence[str]) -> str:
    """Recursive forced removal of every path in a single invocation."""
    return f"rm -rf -- {_quote_all(paths)}"

def extract_command(directory: str, archive_name: str, extractor: str = "unzip -o -q") -> str:
    """Extract *archive_name* inside *directory* with the configured tool."""
    return f"cd {shlex.quote(directory)} && {extractor} {shlex.quote(archive_name)}"
