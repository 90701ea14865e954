from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from hoardd_client.errors import FetchError
from hoardd_client.export.channel import RecordChannel
from hoardd_client.export.scope import RunScope
from hoardd_client.export.types import Page, RawRecord
from hoardd_client.log import get_logger

log = get_logger(__name__)


class ScrollBackend(Protocol):
    def open_scroll(self, index: str, query: Dict[str, Any], page_size: int, keep_alive: str) -> Page: ...

    def fetch_next(self, scroll_id: str, keep_alive: str) -> Page: ...

    def close_scroll(self, scroll_id: str) -> None: ...


class ScrollLease:
    """
    Holds the backend's keep-alive handle for one scan and releases it on exit.

    Use as a context manager: the handle is cleared whether the scan ran to
    the end, failed, or was abandoned.
    """

    def __init__(self, backend: ScrollBackend, keep_alive: str):
        self.backend = backend
        self.keep_alive = keep_alive
        self.scroll_id: Optional[str] = None

    def open(self, index: str, query: Dict[str, Any], page_size: int) -> Page:
        page = self.backend.open_scroll(index, query, page_size, self.keep_alive)
        self._track(page)
        return page

    def next(self) -> Page:
        if self.scroll_id is None:
            raise FetchError("scroll continuation requested before the scroll was opened")
        page = self.backend.fetch_next(self.scroll_id, self.keep_alive)
        self._track(page)
        return page

    def _track(self, page: Page) -> None:
        if page.scroll_id:
            self.scroll_id = page.scroll_id

    def release(self) -> None:
        if self.scroll_id is None:
            return
        scroll_id, self.scroll_id = self.scroll_id, None
        try:
            self.backend.close_scroll(scroll_id)
        except Exception as exc:
            log.warning("failed to clear scroll: %s", exc)

    def __enter__(self) -> "ScrollLease":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class PageSource:
    """Sequential producer: pulls pages in order and hands each record to the channel."""

    def __init__(
        self,
        backend: ScrollBackend,
        index: str,
        query: Dict[str, Any],
        page_size: int = 1000,
        keep_alive: str = "2m",
    ):
        self.backend = backend
        self.index = index
        self.query = query
        self.page_size = page_size
        self.keep_alive = keep_alive
        self.pages_fetched = 0
        self.records_sent = 0

    def run(self, channel: RecordChannel[RawRecord], scope: RunScope) -> int:
        try:
            with ScrollLease(self.backend, self.keep_alive) as lease:
                page = lease.open(self.index, self.query, self.page_size)
                while not page.exhausted:
                    self.pages_fetched += 1
                    log.debug(
                        "page %d: %d records (took %dms)",
                        self.pages_fetched,
                        len(page.records),
                        page.took_ms,
                    )
                    for record in page.records:
                        if not channel.send(record):
                            return self.records_sent
                        self.records_sent += 1
                    if scope.cancelled:
                        return self.records_sent
                    page = lease.next()
        finally:
            channel.close()
        return self.records_sent
