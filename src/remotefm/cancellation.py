"""Cooperative cancellation for mutating operations."""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Optional

from .errors import OperationCancelledError, OperationInProgressError

logger = logging.getLogger(__name__)

_operation_ids = itertools.count(1)

class CancellationToken:
    """Read-only view of a :class:`CancellationSource`."""

    def __init__(self, event: threading.Event) -> None:
        self._event = event

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Checkpoint: raise :class:`OperationCancelledError` once cancelled."""
        if self._event.is_set():
            raise OperationCancelledError()

class CancellationSource:
    """Owns the cancellation flag of exactly one operation."""

    def __init__(self, description: str = "operation") -> None:
        self.operation_id = f"op_{next(_operation_ids)}"
        self.description = description
        self._event = threading.Event()
        self.token = CancellationToken(self._event)

    def cancel(self) -> bool:
        """Request cancellation; returns ``False`` if it was already requested."""
        if self._event.is_set():
            return False
        self._event.set()
        return True

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        state = "cancelled" if self.is_cancelled else "active"
        return f"<CancellationSource {self.operation_id} {self.description!r} {state}>"

class OperationSlot:
    """Single-slot guard for mutating operations.

    Acquiring while another operation holds the slot raises
    :class:`OperationInProgressError` instead of silently replacing it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: Optional[CancellationSource] = None

    @property
    def current(self) -> Optional[CancellationSource]:
        with self._lock:
            return self._current

    @property
    def busy(self) -> bool:
        return self.current is not None

    def acquire(self, description: str = "operation") -> CancellationSource:
        with self._lock:
            if self._current is not None:
                raise OperationInProgressError(
                    f"Cannot start {description}: {self._current.description} is still in progress"
                )
            self._current = CancellationSource(description)
            logger.debug(f"Acquired operation slot for {self._current!r}")
            return self._current

    def release(self, source: CancellationSource) -> None:
        with self._lock:
            if self._current is source:
                self._current = None
                logger.debug(f"Released operation slot for {source!r}")

    def cancel_current(self) -> bool:
        """Cancel whatever operation holds the slot, if any."""
        with self._lock:
            source = self._current
        if source is None:
            return False
        return source.cancel()
