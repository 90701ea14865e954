from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, Iterator, Optional

import requests
from requests.adapters import HTTPAdapter

from hoardd_client.config import BackendConfig
from hoardd_client.errors import BackendError, FetchError
from hoardd_client.export.page_source import ScrollLease
from hoardd_client.export.types import Page, RawRecord
from hoardd_client.log import get_logger

log = get_logger(__name__)

USER_AGENT = "hoardd-client/1.0"


def make_session(backend: BackendConfig, pool_size: int = 16) -> requests.Session:
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size, max_retries=0)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.auth = (backend.username, backend.password)
    session.verify = backend.verify_tls
    session.headers.update({"User-Agent": USER_AGENT, "Content-Type": "application/json"})
    return session


def _page_from_response(payload: Dict[str, Any]) -> Page:
    hits = (payload.get("hits") or {}).get("hits") or []
    records = [
        RawRecord(
            source=json.dumps(hit.get("_source"), ensure_ascii=False, separators=(",", ":")).encode("utf-8"),
            index=hit.get("_index", ""),
            doc_id=str(hit.get("_id", "")),
        )
        for hit in hits
    ]
    return Page(
        records=records,
        scroll_id=payload.get("_scroll_id"),
        exhausted=not records,
        took_ms=int(payload.get("took") or 0),
    )


class SearchClient:
    """
    Thin JSON-over-HTTP client for the search backend's REST API.

    Only the calls the exporter needs are exposed: ping, cluster health,
    count, and the three scroll operations.
    """

    def __init__(self, backend: BackendConfig, session: Optional[requests.Session] = None):
        self.base_url = backend.url.rstrip("/")
        self.timeout = backend.timeout
        self.session = session if session is not None else make_session(backend)

    @classmethod
    def connect(
        cls,
        backend: BackendConfig,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "SearchClient":
        """
        Build a client and confirm the backend answers, retrying a few times.
        """
        client = cls(backend, session=session)
        last_error: Optional[Exception] = None
        for attempt in range(1, backend.connect_attempts + 1):
            try:
                client.ping()
                return client
            except BackendError as exc:
                last_error = exc
                if attempt < backend.connect_attempts:
                    log.warning(
                        "error connecting to backend (attempt %d/%d): %s, retrying in %ss",
                        attempt,
                        backend.connect_attempts,
                        exc,
                        backend.connect_retry_delay,
                    )
                    sleep(backend.connect_retry_delay)
        raise BackendError(f"could not connect to {backend.url}: {last_error}")

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            r = self.session.request(method, url, json=body, params=params, timeout=self.timeout)
            r.raise_for_status()
            return r.json()
        except requests.RequestException as exc:
            raise BackendError(f"{method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise BackendError(f"{method} {path} returned invalid JSON: {exc}") from exc

    def ping(self) -> Dict[str, Any]:
        return self._request("GET", "/")

    def cluster_health(self, index: str) -> str:
        payload = self._request("GET", f"/_cluster/health/{index}")
        return str(payload.get("status", "unknown"))

    def count(self, index: str, query: Dict[str, Any]) -> int:
        payload = self._request("POST", f"/{index}/_count", body={"query": query})
        return int(payload.get("count", 0))

    def _scroll_page(self, path: str, body: Dict[str, Any], params: Optional[Dict[str, Any]] = None) -> Page:
        try:
            payload = self._request("POST", path, body=body, params=params)
        except BackendError as exc:
            raise FetchError(str(exc)) from exc
        try:
            return _page_from_response(payload)
        except (AttributeError, TypeError, ValueError) as exc:
            raise FetchError(f"POST {path} returned a malformed page: {exc}") from exc

    def open_scroll(self, index: str, query: Dict[str, Any], page_size: int, keep_alive: str) -> Page:
        return self._scroll_page(
            f"/{index}/_search",
            body={"size": page_size, "query": query},
            params={"scroll": keep_alive},
        )

    def fetch_next(self, scroll_id: str, keep_alive: str) -> Page:
        return self._scroll_page("/_search/scroll", body={"scroll": keep_alive, "scroll_id": scroll_id})

    def close_scroll(self, scroll_id: str) -> None:
        self._request("DELETE", "/_search/scroll", body={"scroll_id": [scroll_id]})

    def scroll(self, index: str, query: Dict[str, Any], page_size: int = 1000, keep_alive: str = "2m") -> Iterator[Page]:
        """
        Yield non-empty pages in order. The scroll is cleared when the generator
        finishes, raises, or is closed early.
        """
        with ScrollLease(self, keep_alive) as lease:
            page = lease.open(index, query, page_size)
            while not page.exhausted:
                yield page
                page = lease.next()

    def close(self) -> None:
        self.session.close()
