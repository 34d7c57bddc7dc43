"""File operation engine: create, rename, upload, download, paste and delete.

Mutations prefer a server-side fast path (one shell command on the command
channel) and fall back to streaming bytes through the local process over
the file-transfer primitives. Every public method blocks, so callers run
it on a worker thread (see :class:`remotefm.service.AsyncRemoteBrowser`).
"""

from __future__ import annotations

import logging
import os
import uuid
from typing import Callable, List, Optional, Sequence

from . import commands
from .cancellation import CancellationSource, CancellationToken, OperationSlot
from .clipboard import ClipboardState
from .config import TransferConfig
from .errors import (
    ConnectionLostError,
    ErrorKind,
    FileOperationError,
    InvalidRequestError,
    OperationCancelledError,
    OperationInProgressError,
    RemoteCommandError,
    SafetyViolationError,
    TransferError,
)
from .events import EngineEvents
from .fileops import (
    SPECIAL_NAMES,
    TransferBatch,
    build_upload_archive,
    format_size,
    normalize_local_path,
)
from .logger import summarize
from .paths import (
    basename,
    is_nested_path,
    is_protected_path,
    join_remote,
    parent_path,
    resolve_path,
)
from .results import OperationResult
from .session import RemoteSession
from .transfer import download_file, download_tree, fallback_transfer_item, progress_callback

logger = logging.getLogger(__name__)

class FileOperationEngine:
    """Runs mutating operations against one :class:`RemoteSession`.

    Only one mutating operation may run at a time; a second request while
    one is in flight is answered with an ``OPERATION_IN_PROGRESS`` failure.
    """

    def __init__(
        self,
        session: RemoteSession,
        *,
        events: Optional[EngineEvents] = None,
        config: Optional[TransferConfig] = None,
        slot: Optional[OperationSlot] = None,
    ) -> None:
        self._session = session
        self._events = events or EngineEvents()
        self._config = config or TransferConfig()
        self._slot = slot or OperationSlot()
        self.clipboard = ClipboardState(on_changed=self._events.clipboard_changed)

    @property
    def session(self) -> RemoteSession:
        return self._session

    @property
    def events(self) -> EngineEvents:
        return self._events

    # -- clipboard ------------------------------------------------------

    def update_clipboard(self, path: str, is_cut: bool) -> None:
        self.clipboard.set([path], is_cut)
        self._events.log(f"{'Cut' if is_cut else 'Copied'} to clipboard: {path}")

    def update_multi_clipboard(self, paths: Sequence[str], is_cut: bool) -> None:
        self.clipboard.set(paths, is_cut)
        self._events.log(
            f"{'Cut' if is_cut else 'Copied'} {len(self.clipboard.paths)} item(s) to clipboard"
        )

    def clear_clipboard(self) -> None:
        self.clipboard.clear()

    @property
    def has_clipboard_content(self) -> bool:
        return self.clipboard.has_content

    @property
    def has_multiple_clipboard_items(self) -> bool:
        return self.clipboard.has_multiple_items

    @property
    def clipboard_path(self) -> Optional[str]:
        return self.clipboard.first_path

    @property
    def clipboard_paths(self) -> List[str]:
        return self.clipboard.paths

    @property
    def is_clipboard_cut(self) -> bool:
        return self.clipboard.is_cut

    # -- cancellation ---------------------------------------------------

    def begin_operation(self, description: str) -> CancellationSource:
        """Reserve the operation slot ahead of submitting work to a thread."""
        return self._slot.acquire(description)

    def abandon_operation(self, source: CancellationSource) -> None:
        """Give back a reserved slot whose work was never started."""
        self._slot.release(source)

    def request_cancel_current_operation(self) -> bool:
        if self._slot.cancel_current():
            self._events.log("Cancellation requested for the current operation")
            return True
        logger.debug("Cancel requested but no active cancellable operation")
        return False

    @property
    def operation_in_progress(self) -> bool:
        return self._slot.busy

    def _run(
        self,
        description: str,
        func: Callable[[CancellationToken], OperationResult],
        operation: Optional[CancellationSource] = None,
    ) -> OperationResult:
        """Public operation boundary: turn every expected failure into a result."""
        if operation is None:
            try:
                operation = self._slot.acquire(description)
            except OperationInProgressError as exc:
                self._events.log(str(exc), logging.WARNING)
                return OperationResult.failure(str(exc), exc.kind)

        try:
            return func(operation.token)
        except OperationCancelledError:
            self._events.log(f"{description.capitalize()} cancelled")
            return OperationResult.cancelled()
        except FileOperationError as exc:
            self._events.log(f"{description.capitalize()} failed: {exc}", logging.ERROR)
            return OperationResult.failure(str(exc), exc.kind)
        except ConnectionLostError:
            logger.error(f"Connection lost during {description}")
            raise
        except OSError as exc:
            self._events.log(f"{description.capitalize()} failed: {exc}", logging.ERROR)
            return OperationResult.failure(str(exc), ErrorKind.TRANSFER_FAILURE)
        except Exception as exc:
            logger.exception(f"Unexpected error during {description}")
            self._events.log(f"{description.capitalize()} failed unexpectedly: {exc}", logging.ERROR)
            return OperationResult.failure(str(exc), ErrorKind.UNEXPECTED)
        finally:
            self._slot.release(operation)
            self._events.progress(False)

    def _resolve(self, path: str) -> str:
        return resolve_path(path, self._session.home_directory)

    def _discard_remote(self, path: str) -> None:
        """Best-effort removal of a remote file we created."""
        try:
            self._session.delete_file(path)
            logger.debug(f"Removed remote file {path}")
        except FileNotFoundError:
            pass
        except OSError as exc:
            self._events.log(f"Could not remove remote file {path}: {exc}", logging.WARNING)

    # -- create / rename ------------------------------------------------

    def create_folder(
        self, name: str, current_dir: str, *, operation: Optional[CancellationSource] = None
    ) -> OperationResult:
        def _impl(token: CancellationToken) -> OperationResult:
            _validate_name(name)
            path = self._resolve(join_remote(current_dir, name))
            token.raise_if_cancelled()

            self._events.progress(True, f"Creating folder {name}")
            self._events.log(f"Creating folder '{name}' at {path}")
            try:
                self._session.create_directory(path)
            except OSError as exc:
                raise TransferError(f"Cannot create folder '{name}': {exc}") from exc

            self._events.log(f"Successfully created folder '{name}'")
            return OperationResult.success(path)

        return self._run("create folder", _impl, operation)

    def rename(
        self,
        old_path: str,
        new_name: str,
        is_folder: bool = False,
        *,
        operation: Optional[CancellationSource] = None,
    ) -> OperationResult:
        def _impl(token: CancellationToken) -> OperationResult:
            _validate_name(new_name)
            resolved_old = self._resolve(old_path)
            new_path = join_remote(parent_path(resolved_old), new_name)
            token.raise_if_cancelled()

            kind = "folder" if is_folder else "file"
            self._events.progress(True, f"Renaming {basename(resolved_old)}")
            self._events.log(f"Renaming {kind} {resolved_old} -> {new_path}")
            try:
                self._session.rename(resolved_old, new_path)
            except OSError as exc:
                raise TransferError(f"Cannot rename '{resolved_old}': {exc}") from exc

            self._events.log(f"Successfully renamed {kind} to '{new_name}'")
            return OperationResult.success(new_path)

        return self._run("rename", _impl, operation)

    # -- upload ---------------------------------------------------------

    def upload_file(
        self, local_path: str, remote_path: str, *, operation: Optional[CancellationSource] = None
    ) -> OperationResult:
        return self._run(
            "upload", lambda token: self._upload_single(local_path, remote_path, token), operation
        )

    def upload_files(
        self,
        local_paths: Sequence[str],
        remote_dir: str,
        *,
        operation: Optional[CancellationSource] = None,
    ) -> OperationResult:
        """Upload a selection; several items or any folder go as one archive."""

        def _impl(token: CancellationToken) -> OperationResult:
            paths = [p for p in local_paths if p]
            if not paths:
                raise InvalidRequestError("No files selected for upload")
            missing = [p for p in paths if not os.path.exists(p)]
            if missing:
                raise InvalidRequestError(f"Local path does not exist: {missing[0]}")

            if len(paths) == 1 and not os.path.isdir(paths[0]):
                target = join_remote(remote_dir, os.path.basename(paths[0]))
                return self._upload_single(paths[0], target, token)
            return self._upload_batch(paths, remote_dir, token)

        return self._run("upload", _impl, operation)

    def _upload_single(
        self, local_path: str, remote_path: str, token: CancellationToken
    ) -> OperationResult:
        if not os.path.isfile(local_path):
            raise InvalidRequestError(f"Not a regular file: {local_path}")

        resolved = self._resolve(remote_path)
        size = os.path.getsize(local_path)
        name = os.path.basename(local_path)
        self._events.log(f"Uploading {local_path} ({format_size(size)}) to {resolved}")
        self._events.progress(True, f"Uploading {name}", 0, size)
        token.raise_if_cancelled()

        try:
            self._session.upload_stream(
                local_path, resolved, progress_callback(self._events, token, f"Uploading {name}")
            )
        except OperationCancelledError:
            self._discard_remote(resolved)
            raise
        except OSError as exc:
            raise TransferError(f"Failed to upload {name}: {exc}") from exc

        self._events.log(f"Successfully uploaded {name} to {resolved}")
        return OperationResult.success(resolved)

    def _upload_batch(
        self, local_paths: List[str], remote_dir: str, token: CancellationToken
    ) -> OperationResult:
        remote_dir = self._resolve(remote_dir)
        archive_name = f"{self._config.archive_prefix}{uuid.uuid4().hex}.zip"
        batch = TransferBatch(
            local_paths=list(local_paths),
            archive_name=archive_name,
            remote_archive_path=join_remote(remote_dir, archive_name),
            local_archive_path=os.path.join(self._config.temp_dir, archive_name),
        )
        remote_written = False

        self._events.log(f"Packing {len(local_paths)} item(s) into {archive_name}")
        self._events.progress(True, f"Packing {len(local_paths)} item(s)")
        try:
            token.raise_if_cancelled()
            batch.members = build_upload_archive(
                batch.local_paths, batch.local_archive_path, token.raise_if_cancelled
            )
            token.raise_if_cancelled()

            remote_written = True
            size = os.path.getsize(batch.local_archive_path)
            self._events.log(
                f"Uploading archive ({format_size(size)}, {len(batch.members)} entries) "
                f"to {batch.remote_archive_path}"
            )
            try:
                self._session.upload_stream(
                    batch.local_archive_path,
                    batch.remote_archive_path,
                    progress_callback(self._events, token, "Uploading archive"),
                )
            except OSError as exc:
                raise TransferError(f"Failed to upload archive: {exc}") from exc

            token.raise_if_cancelled()
            self._events.progress(True, "Extracting archive on server")
            result = self._session.run_command(
                commands.extract_command(remote_dir, archive_name, self._config.extract_command)
            )
            if not result.ok:
                raise RemoteCommandError(
                    f"Extracting {archive_name} failed ({result.describe()})", result
                )

            self._events.log(f"Successfully uploaded {len(local_paths)} item(s) to {remote_dir}")
            return OperationResult.success(batch)
        finally:
            if remote_written:
                self._discard_remote(batch.remote_archive_path)
            try:
                os.remove(batch.local_archive_path)
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.warning(f"Could not remove local archive {batch.local_archive_path}: {exc}")

    # -- paste ----------------------------------------------------------

    def paste(
        self, destination_dir: str, *, operation: Optional[CancellationSource] = None
    ) -> OperationResult:
        """Copy or move the clipboard contents into *destination_dir*.

        Once the transfer has run, the clipboard is cleared, for copies as
        well as cuts and even after a partial failure. It is kept when the
        request is rejected up front or the transfer is cancelled before it
        completes; a cancel that arrives after a successful server-side
        command still clears it.
        """

        def _impl(token: CancellationToken) -> OperationResult:
            sources, is_cut = self.clipboard.snapshot()
            if not sources:
                raise InvalidRequestError("Clipboard is empty")
            if len(sources) > 1:
                return self._paste_multiple(sources, destination_dir, is_cut, token)
            return self._paste_single(sources[0], destination_dir, is_cut, token)

        return self._run("paste", _impl, operation)

    def _check_not_nested(self, source: str, destination: str, is_cut: bool) -> None:
        if is_nested_path(destination, source):
            verb = "move" if is_cut else "copy"
            raise SafetyViolationError(
                f"Cannot {verb} '{source}' to '{destination}': destination is inside the source"
            )

    def _attempt_fast_path(self, sources: Sequence[str], destination: str, is_cut: bool) -> bool:
        """Primary strategy: one ``mv``/``cp -R`` on the command channel."""
        command = commands.transfer_command(sources, destination, is_cut)
        logger.debug(f"Fast path: {summarize(command)}")
        result = self._session.run_command(command)
        if result.ok:
            return True
        self._events.log(
            f"Server-side {'move' if is_cut else 'copy'} failed ({result.describe()}), "
            "falling back to streamed transfer",
            logging.WARNING,
        )
        return False

    def _fallback_item(
        self, source: str, destination: str, is_cut: bool, token: CancellationToken
    ) -> None:
        fallback_transfer_item(
            self._session,
            source,
            destination,
            is_cut,
            token,
            spool_dir=self._config.temp_dir,
            events=self._events,
        )

    def _paste_single(
        self, source: str, destination_dir: str, is_cut: bool, token: CancellationToken
    ) -> OperationResult:
        source = self._resolve(source)
        destination = join_remote(self._resolve(destination_dir), basename(source))
        self._check_not_nested(source, destination, is_cut)

        verb = "Moving" if is_cut else "Copying"
        self._events.log(f"{verb} {source} to {destination}")
        self._events.progress(True, f"{verb} {basename(source)}")

        token.raise_if_cancelled()
        interrupted = False
        try:
            if not self._attempt_fast_path([source], destination, is_cut):
                token.raise_if_cancelled()
                self._fallback_item(source, destination, is_cut, token)
        except OperationCancelledError:
            interrupted = True
            raise
        finally:
            if not interrupted:
                self.clipboard.clear()

        self._events.log(
            f"Successfully {'moved' if is_cut else 'copied'} {source} to {destination}"
        )
        return OperationResult.success(destination)

    def _paste_multiple(
        self, sources: List[str], destination_dir: str, is_cut: bool, token: CancellationToken
    ) -> OperationResult:
        destination_dir = self._resolve(destination_dir)
        pairs = []
        for source in sources:
            resolved = self._resolve(source)
            pairs.append((resolved, join_remote(destination_dir, basename(resolved))))
        for source, destination in pairs:
            self._check_not_nested(source, destination, is_cut)

        verb, past = ("move", "moved") if is_cut else ("copy", "copied")
        total = len(pairs)
        self._events.log(f"Starting paste of {total} item(s) into {destination_dir}")
        self._events.progress(True, f"Pasting {total} item(s)", 0, total)

        token.raise_if_cancelled()
        interrupted = False
        try:
            if self._attempt_fast_path([s for s, _ in pairs], destination_dir, is_cut):
                self._events.log(f"Successfully {past} {total} item(s) to {destination_dir}")
                return OperationResult.success(destination_dir)

            succeeded = 0
            errors: List[str] = []
            for index, (source, destination) in enumerate(pairs, start=1):
                token.raise_if_cancelled()
                name = basename(source)
                self._events.progress(True, f"{verb.capitalize()} {name}", index, total)
                try:
                    self._fallback_item(source, destination, is_cut, token)
                except OperationCancelledError:
                    raise
                except (FileOperationError, OSError) as exc:
                    errors.append(f"Failed to {verb} {name}: {exc}")
                    self._events.log(errors[-1], logging.ERROR)
                    continue
                succeeded += 1
                self._events.log(f"Successfully {past} {name}")
        except OperationCancelledError:
            interrupted = True
            raise
        finally:
            if not interrupted:
                self.clipboard.clear()

        summary = f"Paste completed: {succeeded} successful, {len(errors)} failed"
        self._events.log(summary)
        if succeeded == 0:
            return OperationResult.failure(
                f"{summary}. Errors: {'; '.join(errors)}", ErrorKind.TRANSFER_FAILURE
            )
        return OperationResult.success(
            {"destination": destination_dir, "succeeded": succeeded, "errors": errors}
        )

    # -- download -------------------------------------------------------

    def download(
        self,
        remote_path: str,
        local_path: str,
        is_folder: bool = False,
        *,
        operation: Optional[CancellationSource] = None,
    ) -> OperationResult:
        def _impl(token: CancellationToken) -> OperationResult:
            resolved = self._resolve(remote_path)
            target = normalize_local_path(local_path)
            name = basename(resolved)
            self._events.log(f"Downloading {resolved} to {target}")
            self._events.progress(True, f"Downloading {name}")
            token.raise_if_cancelled()

            if is_folder:
                count = download_tree(self._session, resolved, target, token, self._events)
                self._events.log(f"Successfully downloaded folder {name} ({count} files)")
            else:
                download_file(self._session, resolved, target, token, self._events)
                self._events.log(f"Successfully downloaded {name}")
            return OperationResult.success(target)

        return self._run("download", _impl, operation)

    # -- delete ---------------------------------------------------------

    def _resolve_deletable(self, path: str) -> str:
        home = self._session.home_directory
        resolved = self._resolve(path)
        if is_protected_path(path, home) or is_protected_path(resolved, home):
            raise SafetyViolationError(f"Refusing to delete protected path {path!r}")
        return resolved

    def delete(self, path: str, *, operation: Optional[CancellationSource] = None) -> OperationResult:
        """Delete one item; folders go through a single ``rm -rf``.

        There is no streamed fallback: a failing remove command is reported
        as is.
        """

        def _impl(token: CancellationToken) -> OperationResult:
            resolved = self._resolve_deletable(path)
            token.raise_if_cancelled()

            name = basename(resolved)
            self._events.log(f"Deleting {resolved}")
            self._events.progress(True, f"Deleting {name}")
            try:
                info = self._session.stat(resolved)
            except OSError as exc:
                raise TransferError(f"Cannot read {resolved}: {exc}") from exc

            token.raise_if_cancelled()
            if info.is_dir:
                result = self._session.run_command(commands.remove_command([resolved]))
                if not result.ok:
                    raise RemoteCommandError(
                        f"Failed to delete {resolved} ({result.describe()})", result
                    )
            else:
                try:
                    self._session.delete_file(resolved)
                except OSError as exc:
                    raise TransferError(f"Failed to delete {resolved}: {exc}") from exc

            self._events.log(f"Successfully deleted {name}")
            return OperationResult.success(resolved)

        return self._run("delete", _impl, operation)

    def delete_multiple(
        self, paths: Sequence[str], *, operation: Optional[CancellationSource] = None
    ) -> OperationResult:
        def _impl(token: CancellationToken) -> OperationResult:
            if not paths:
                raise InvalidRequestError("No items provided")
            resolved = [self._resolve_deletable(p) for p in paths]
            token.raise_if_cancelled()

            self._events.log(f"Deleting {len(resolved)} item(s)")
            self._events.progress(True, f"Deleting {len(resolved)} item(s)")
            command = commands.remove_command(resolved)
            logger.debug(f"Remove command: {summarize(command)}")
            result = self._session.run_command(command)
            if not result.ok:
                raise RemoteCommandError(
                    f"Failed to delete {len(resolved)} item(s) ({result.describe()})", result
                )

            self._events.log(f"Successfully deleted {len(resolved)} item(s)")
            return OperationResult.success(resolved)

        return self._run("delete", _impl, operation)

def _validate_name(name: str) -> None:
    if not name or not name.strip() or "/" in name or name in SPECIAL_NAMES:
        raise InvalidRequestError(f"Invalid name: {name!r}")
