from __future__ import annotations

import threading
from typing import Callable, List, Optional

from hoardd_client.export.types import RunStatus


class RunScope:
    """
    Cancellation and first-error bookkeeping shared by every pipeline participant.

    The first call to ``fail`` or ``cancel`` decides the run's terminal
    status; later calls are ignored. Cancelling wakes everything registered
    through ``on_cancel`` so blocked senders and receivers re-check the flag.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._status: Optional[RunStatus] = None
        self._error: Optional[BaseException] = None
        self._wakers: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def status(self) -> Optional[RunStatus]:
        return self._status

    def on_cancel(self, waker: Callable[[], None]) -> None:
        with self._lock:
            self._wakers.append(waker)

    def fail(self, error: BaseException) -> bool:
        """Record ``error`` as the terminal error if nothing has ended the run yet."""
        return self._finish(RunStatus.FAILED, error)

    def cancel(self, status: RunStatus = RunStatus.CANCELLED) -> bool:
        return self._finish(status, None)

    def _finish(self, status: RunStatus, error: Optional[BaseException]) -> bool:
        with self._lock:
            if self._status is not None:
                return False
            self._status = status
            self._error = error
            self._cancelled.set()
            wakers = list(self._wakers)
        for wake in wakers:
            wake()
        return True
