"""Remote directory navigation with bounded back/forward history."""

from __future__ import annotations

import logging
import posixpath
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .config import NavigationConfig
from .errors import ConnectionLostError
from .events import EngineEvents, ListingSink
from .fileops import SPECIAL_NAMES, FileEntry
from .paths import HOME_MARKER, ROOT, join_remote, parent_path, resolve_path
from .session import RemoteSession

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class NavigationState:
    """Snapshot handed to navigation listeners after every load attempt."""

    current_path: str
    history: Tuple[str, ...]
    history_index: int
    is_loading: bool
    can_navigate_back: bool
    can_navigate_forward: bool
    is_at_root: bool

class NavigationManager:
    """Owns the current remote path and the navigation history.

    Loads are single-flight: a request arriving while a listing is still
    loading is dropped with a warning, never queued.
    """

    def __init__(
        self,
        session: RemoteSession,
        *,
        listing: Optional[ListingSink] = None,
        events: Optional[EngineEvents] = None,
        config: Optional[NavigationConfig] = None,
        on_state_changed: Optional[Callable[[NavigationState], None]] = None,
    ) -> None:
        self._session = session
        self.listing = listing or ListingSink()
        self._events = events or EngineEvents()
        self._history_limit = (config or NavigationConfig()).history_limit
        self._on_state_changed = on_state_changed

        self._lock = threading.Lock()
        self._current_path = HOME_MARKER
        self._history: List[str] = []
        self._history_index = -1
        self._is_loading = False

    # -- queries --------------------------------------------------------

    @property
    def current_path(self) -> str:
        return self._current_path

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def history(self) -> List[str]:
        with self._lock:
            return list(self._history)

    @property
    def history_index(self) -> int:
        return self._history_index

    @property
    def can_navigate_back(self) -> bool:
        return self._history_index > 0

    @property
    def can_navigate_forward(self) -> bool:
        return 0 <= self._history_index < len(self._history) - 1

    @property
    def is_at_root(self) -> bool:
        return self._current_path in ("", ROOT, HOME_MARKER)

    def state(self) -> NavigationState:
        with self._lock:
            return NavigationState(
                current_path=self._current_path,
                history=tuple(self._history),
                history_index=self._history_index,
                is_loading=self._is_loading,
                can_navigate_back=self.can_navigate_back,
                can_navigate_forward=self.can_navigate_forward,
                is_at_root=self.is_at_root,
            )

    # -- navigation primitives ------------------------------------------

    def go_to_folder(self, path: str, *, from_history: bool = False) -> bool:
        """Load *path* into the listing sink.

        Returns ``True`` when the listing was loaded. A missing directory is
        retried once against the home directory; a denied one restores the
        previous path without touching the history. Connection failures
        propagate.
        """
        with self._lock:
            if self._is_loading:
                logger.warning(f"Directory loading already in progress, ignoring request for: {path}")
                return False
            self._is_loading = True

        resolved = resolve_path(path, self._session.home_directory)
        retry_home = False
        loaded = False
        try:
            self._events.log(f"Loading directory: {resolved}", logging.DEBUG)
            self._events.progress(True, f"Loading directory: {resolved}")
            self._current_path = resolved
            self._events.dispatch(self.listing.clear, resolved)
            self._events.dispatch(
                self.listing.add_entry, FileEntry("..", True, 0, time.time())
            )

            count = 0
            for entry in self._session.list_directory(resolved):
                if entry.name in SPECIAL_NAMES:
                    continue
                self._events.dispatch(self.listing.add_entry, entry)
                count += 1

            if not from_history:
                self._add_to_history(resolved)
            loaded = True
            logger.info(f"Directory loaded: {count} items found in {resolved}")
        except FileNotFoundError as exc:
            self._events.log(f"Directory not found: {resolved} ({exc})", logging.ERROR)
            retry_home = path not in (ROOT, HOME_MARKER) and resolved not in (
                ROOT,
                self._session.home_directory,
            )
            if not retry_home:
                self._restore_previous_path()
        except PermissionError as exc:
            self._events.log(f"Access denied to directory {resolved} ({exc})", logging.ERROR)
            self._restore_previous_path()
        except ConnectionLostError:
            self._restore_previous_path()
            raise
        except Exception as exc:
            logger.exception(f"Error loading directory {resolved}")
            self._events.log(f"Error loading directory {resolved}: {exc}", logging.ERROR)
            self._restore_previous_path()
        finally:
            with self._lock:
                self._is_loading = False
            self._events.progress(False)
            self._notify_state()

        if retry_home:
            self._events.log("Attempting to navigate to home directory")
            return self.go_to_folder(HOME_MARKER)
        return loaded

    def navigate_back(self) -> bool:
        with self._lock:
            if self._is_loading or not self.can_navigate_back:
                logger.warning("Cannot navigate back: no previous location or a load is in progress")
                return False
            self._history_index -= 1
            target = self._history[self._history_index]
        logger.info(f"Navigating back to: {target} (index {self._history_index})")
        return self.go_to_folder(target, from_history=True)

    def navigate_forward(self) -> bool:
        with self._lock:
            if self._is_loading or not self.can_navigate_forward:
                logger.warning("Cannot navigate forward: no next location or a load is in progress")
                return False
            self._history_index += 1
            target = self._history[self._history_index]
        logger.info(f"Navigating forward to: {target} (index {self._history_index})")
        return self.go_to_folder(target, from_history=True)

    def navigate_up(self) -> bool:
        if self.is_at_root:
            logger.warning("Cannot navigate up: already at root")
            return False
        parent = parent_path(self._current_path)
        logger.info(f"Going up one level to: {parent}")
        return self.go_to_folder(parent)

    def refresh_current_directory(self) -> bool:
        return self.go_to_folder(self._current_path)

    def reset(self) -> None:
        """Forget the history, e.g. after the session was replaced."""
        with self._lock:
            self._history.clear()
            self._history_index = -1
            self._current_path = HOME_MARKER

    # -- helpers --------------------------------------------------------

    def _add_to_history(self, path: str) -> None:
        with self._lock:
            if self._history and self._history[self._history_index] == path:
                return

            if self._history_index < len(self._history) - 1:
                del self._history[self._history_index + 1:]

            self._history.append(path)
            self._history_index = len(self._history) - 1

            while len(self._history) > self._history_limit:
                self._history.pop(0)
                self._history_index -= 1

        logger.debug(
            f"Added to navigation history: {path} "
            f"(index {self._history_index}, total {len(self._history)})"
        )

    def _restore_previous_path(self) -> None:
        with self._lock:
            if self._history:
                self._current_path = self._history[self._history_index]
        logger.info(f"Returned to previous directory: {self._current_path}")

    def _notify_state(self) -> None:
        if self._on_state_changed is not None:
            self._events.dispatch(self._on_state_changed, self.state())

class PathCompleter:
    """Suggests remote paths for a partially typed location."""

    def __init__(self, session: RemoteSession) -> None:
        self._session = session

    def complete(self, partial: str, current_dir: str = ROOT, limit: int = 50) -> List[str]:
        """Return matching paths, directories first, each directory ending in ``/``."""
        if not partial:
            directory, prefix = current_dir, ""
        elif partial.endswith("/"):
            directory, prefix = partial, ""
        else:
            directory, prefix = posixpath.split(partial)
            directory = directory or current_dir

        if not directory.startswith((ROOT, HOME_MARKER)):
            directory = join_remote(current_dir, directory)
        resolved = resolve_path(directory, self._session.home_directory)

        try:
            entries = list(self._session.list_directory(resolved))
        except (FileNotFoundError, PermissionError, NotADirectoryError) as exc:
            logger.debug(f"No completions for {partial!r}: {exc}")
            return []

        matches = [
            e
            for e in entries
            if e.name not in SPECIAL_NAMES
            and e.name.startswith(prefix)
            and (prefix.startswith(".") or not e.name.startswith("."))
        ]
        matches.sort(key=lambda e: (not e.is_dir, e.name.lower()))
        return [
            join_remote(resolved, e.name) + ("/" if e.is_dir else "") for e in matches[:limit]
        ]
