from __future__ import annotations

import threading
from typing import Generic, Iterator, Optional, TypeVar

from hoardd_client.export.scope import RunScope

T = TypeVar("T")

_EMPTY = object()


class ChannelClosed(Exception):
    """Raised by ``recv`` once the channel is closed and drained, or the run is cancelled."""


class RecordChannel(Generic[T]):
    """
    Unbuffered hand-off between one sender and any number of receivers.

    ``send`` returns only after a receiver has taken the item, so at most one
    record waits in the channel at any time. Cancelling the bound scope wakes
    both sides: a pending send is withdrawn and receivers stop without
    draining.
    """

    def __init__(self, scope: Optional[RunScope] = None):
        self._cond = threading.Condition()
        self._slot: object = _EMPTY
        self._closed = False
        self._sent = 0
        self._received = 0
        self._scope = scope
        if scope is not None:
            scope.on_cancel(self._wake)

    def _wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def _cancelled(self) -> bool:
        return self._scope is not None and self._scope.cancelled

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, item: T) -> bool:
        """
        Hand ``item`` to a receiver. Returns False if the run was cancelled first.
        """
        with self._cond:
            if self._closed:
                raise ChannelClosed("send on closed channel")
            while self._slot is not _EMPTY and not self._cancelled():
                self._cond.wait()
            if self._cancelled():
                return False
            self._slot = item
            self._sent += 1
            ticket = self._sent
            self._cond.notify_all()
            while self._received < ticket and not self._cancelled():
                self._cond.wait()
            if self._received >= ticket:
                return True
            # cancelled before any receiver arrived
            self._slot = _EMPTY
            self._sent -= 1
            self._cond.notify_all()
            return False

    def recv(self) -> T:
        with self._cond:
            while True:
                if self._cancelled():
                    raise ChannelClosed("run cancelled")
                if self._slot is not _EMPTY:
                    item = self._slot
                    self._slot = _EMPTY
                    self._received += 1
                    self._cond.notify_all()
                    return item  # type: ignore[return-value]
                if self._closed:
                    raise ChannelClosed("channel closed")
                self._cond.wait()

    def close(self) -> None:
        with self._cond:
            if self._closed:
                raise ChannelClosed("close of closed channel")
            self._closed = True
            self._cond.notify_all()

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.recv()
            except ChannelClosed:
                return
