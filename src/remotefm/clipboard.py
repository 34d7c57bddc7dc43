"""Cut/copy clipboard owned by one file operation engine."""

from __future__ import annotations

import threading
from typing import Callable, Iterable, List, Optional, Tuple

class ClipboardState:
    """Ordered source paths plus a cut/copy flag.

    Non-empty exactly when a cut or copy was issued since the last paste or
    clear. *on_changed* is invoked after every mutation.
    """

    def __init__(self, on_changed: Optional[Callable[[], None]] = None) -> None:
        self._lock = threading.Lock()
        self._paths: List[str] = []
        self._is_cut = False
        self._on_changed = on_changed

    def set(self, paths: Iterable[str], is_cut: bool) -> None:
        with self._lock:
            self._paths = [p for p in paths if p]
            self._is_cut = bool(is_cut) and bool(self._paths)
        self._notify()

    def clear(self) -> None:
        with self._lock:
            if not self._paths and not self._is_cut:
                return
            self._paths = []
            self._is_cut = False
        self._notify()

    def snapshot(self) -> Tuple[List[str], bool]:
        """Return a copy of ``(paths, is_cut)`` taken under the lock."""
        with self._lock:
            return list(self._paths), self._is_cut

    @property
    def paths(self) -> List[str]:
        return self.snapshot()[0]

    @property
    def first_path(self) -> Optional[str]:
        paths = self.paths
        return paths[0] if paths else None

    @property
    def is_cut(self) -> bool:
        return self.snapshot()[1]

    @property
    def has_content(self) -> bool:
        return bool(self.paths)

    @property
    def has_multiple_items(self) -> bool:
        return len(self.paths) > 1

    def _notify(self) -> None:
        if self._on_changed:
            self._on_changed()
