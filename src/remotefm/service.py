"""Thread-pool facade over the navigation manager and the operation engine."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from .cancellation import CancellationSource
from .config import Config
from .engine import FileOperationEngine
from .errors import OperationInProgressError
from .events import EngineEvents, ListingSink
from .navigation import NavigationManager, NavigationState, PathCompleter
from .results import OperationResult
from .session import RemoteSession

logger = logging.getLogger(__name__)

class OperationHandle:
    """A running mutating operation and its own cancellation source."""

    def __init__(self, future: Future, source: Optional[CancellationSource] = None) -> None:
        self.future = future
        self._source = source

    @property
    def operation_id(self) -> Optional[str]:
        return self._source.operation_id if self._source else None

    def cancel(self) -> bool:
        """Cancel this operation only; other operations are unaffected."""
        if self._source is None or self.future.done():
            return False
        return self._source.cancel()

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None) -> OperationResult:
        return self.future.result(timeout)

class AsyncRemoteBrowser:
    """Runs browsing and file operations on worker threads.

    Navigation calls return a :class:`Future` resolving to ``True`` when the
    listing loaded. Mutations return an :class:`OperationHandle`; the current
    directory is reloaded after every remote-mutating operation completes.
    """

    def __init__(
        self,
        session: RemoteSession,
        *,
        config: Optional[Config] = None,
        events: Optional[EngineEvents] = None,
        listing: Optional[ListingSink] = None,
        on_state_changed: Optional[Callable[[NavigationState], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        self._config = config or Config()
        self.events = events or EngineEvents()
        self.session = session
        self.engine = FileOperationEngine(
            session, events=self.events, config=self._config.transfer
        )
        self.navigation = NavigationManager(
            session,
            listing=listing,
            events=self.events,
            config=self._config.navigation,
            on_state_changed=on_state_changed,
        )
        self.completer = PathCompleter(session)
        self._on_error = on_error
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.transfer.max_workers, thread_name_prefix="remotefm"
        )

    def close(self) -> None:
        self.request_cancel_current_operation()
        self._executor.shutdown(wait=False)
        close = getattr(self.session, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "AsyncRemoteBrowser":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- helpers --------------------------------------------------------

    def _submit(
        self,
        func: Callable[[], object],
        *,
        on_success: Optional[Callable[[object], None]] = None,
    ) -> Future:
        future = self._executor.submit(func)

        def _done(fut: Future) -> None:
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                logger.error(f"Background task failed: {exc}")
                if self._on_error:
                    self.events.dispatch(self._on_error, exc)
            elif on_success:
                self.events.dispatch(on_success, fut.result())

        future.add_done_callback(_done)
        return future

    def _start(
        self,
        description: str,
        func: Callable[[CancellationSource], OperationResult],
        *,
        refresh: bool = True,
    ) -> OperationHandle:
        try:
            source = self.engine.begin_operation(description)
        except OperationInProgressError as exc:
            self.events.log(str(exc), logging.WARNING)
            future: Future = Future()
            future.set_result(OperationResult.failure(str(exc), exc.kind))
            return OperationHandle(future)

        def _impl() -> OperationResult:
            try:
                return func(source)
            finally:
                if refresh:
                    self.navigation.refresh_current_directory()

        try:
            future = self._submit(_impl)
        except RuntimeError:
            self.engine.abandon_operation(source)
            raise
        return OperationHandle(future, source)

    # -- connection / navigation ----------------------------------------

    def connect(self) -> Future:
        """Open the session, then load the home directory."""

        def _impl() -> bool:
            connect = getattr(self.session, "connect", None)
            if connect is not None:
                connect()
            self.navigation.reset()
            return self.navigation.go_to_folder("~")

        return self._submit(_impl)

    def go_to_folder(self, path: str) -> Future:
        return self._submit(lambda: self.navigation.go_to_folder(path))

    def navigate_back(self) -> Future:
        return self._submit(self.navigation.navigate_back)

    def navigate_forward(self) -> Future:
        return self._submit(self.navigation.navigate_forward)

    def navigate_up(self) -> Future:
        return self._submit(self.navigation.navigate_up)

    def refresh(self) -> Future:
        return self._submit(self.navigation.refresh_current_directory)

    def complete_path(self, partial: str) -> Future:
        current = self.navigation.current_path
        return self._submit(lambda: self.completer.complete(partial, current))

    @property
    def current_path(self) -> str:
        return self.navigation.current_path

    # -- clipboard ------------------------------------------------------

    def copy(self, paths: Sequence[str]) -> None:
        self.engine.update_multi_clipboard(paths, is_cut=False)

    def cut(self, paths: Sequence[str]) -> None:
        self.engine.update_multi_clipboard(paths, is_cut=True)

    # -- mutations ------------------------------------------------------

    def create_folder(self, name: str) -> OperationHandle:
        current = self.navigation.current_path
        return self._start(
            "create folder",
            lambda op: self.engine.create_folder(name, current, operation=op),
        )

    def rename(self, old_path: str, new_name: str, is_folder: bool = False) -> OperationHandle:
        return self._start(
            "rename",
            lambda op: self.engine.rename(old_path, new_name, is_folder, operation=op),
        )

    def upload_files(self, local_paths: Sequence[str]) -> OperationHandle:
        current = self.navigation.current_path
        paths: List[str] = list(local_paths)
        return self._start(
            "upload", lambda op: self.engine.upload_files(paths, current, operation=op)
        )

    def paste(self) -> OperationHandle:
        current = self.navigation.current_path
        return self._start("paste", lambda op: self.engine.paste(current, operation=op))

    def delete(self, paths: Sequence[str]) -> OperationHandle:
        targets = list(paths)
        if len(targets) == 1:
            return self._start(
                "delete", lambda op: self.engine.delete(targets[0], operation=op)
            )
        return self._start(
            "delete", lambda op: self.engine.delete_multiple(targets, operation=op)
        )

    def download(self, remote_path: str, local_path: str, is_folder: bool = False) -> OperationHandle:
        return self._start(
            "download",
            lambda op: self.engine.download(remote_path, local_path, is_folder, operation=op),
            refresh=False,
        )

    def request_cancel_current_operation(self) -> bool:
        return self.engine.request_cancel_current_operation()
