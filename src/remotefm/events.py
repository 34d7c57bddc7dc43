"""Event sinks through which the engine reports to the UI layer."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from .fileops import FileEntry

logger = logging.getLogger(__name__)

Dispatcher = Callable[[Callable, tuple, dict], None]
ProgressSink = Callable[[bool, str, Optional[int], Optional[int]], None]
LogSink = Callable[[str], None]
ClipboardChangedSink = Callable[[], None]

def direct_dispatcher(func: Callable, args: tuple = (), kwargs: Optional[dict] = None) -> None:
    """Invoke the callback on the calling thread."""
    func(*args, **(kwargs or {}))

class ListingSink:
    """Receives a directory listing as it streams in.

    The default implementation keeps the entries in memory, which is what
    headless callers and tests need. UI adapters override both methods.
    """

    def __init__(self) -> None:
        self.path: Optional[str] = None
        self.entries = []

    def clear(self, path: str) -> None:
        self.path = path
        self.entries = []

    def add_entry(self, entry: FileEntry) -> None:
        self.entries.append(entry)

class EngineEvents:
    """Fan-out of progress, log and clipboard notifications.

    Every sink call goes through *dispatcher*, so a GUI can marshal them
    back onto its main loop (for GTK: ``GLib.idle_add``). A failing sink is
    logged and never breaks the operation that reported to it.
    """

    def __init__(
        self,
        *,
        on_progress: Optional[ProgressSink] = None,
        on_log: Optional[LogSink] = None,
        on_clipboard_changed: Optional[ClipboardChangedSink] = None,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        self.on_progress = on_progress
        self.on_log = on_log
        self.on_clipboard_changed = on_clipboard_changed
        self._dispatcher = dispatcher or direct_dispatcher

    def dispatch(self, func: Optional[Callable], *args: Any) -> None:
        if func is None:
            return
        try:
            self._dispatcher(func, args, {})
        except Exception as exc:
            logger.error(f"Event sink {func!r} failed: {exc}", exc_info=True)

    def progress(
        self,
        show: bool,
        message: str = "",
        current: Optional[int] = None,
        total: Optional[int] = None,
    ) -> None:
        self.dispatch(self.on_progress, show, message, current, total)

    def log(self, message: str, level: int = logging.INFO) -> None:
        """Write a human-readable line to the Python logger and the log sink."""
        logger.log(level, message)
        self.dispatch(self.on_log, message)

    def clipboard_changed(self) -> None:
        self.dispatch(self.on_clipboard_changed)
