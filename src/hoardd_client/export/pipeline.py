from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional

from hoardd_client.config import Config
from hoardd_client.export.channel import RecordChannel
from hoardd_client.export.page_source import PageSource, ScrollBackend
from hoardd_client.export.progress import ProgressTracker
from hoardd_client.export.scope import RunScope
from hoardd_client.export.sink import SinkWriter
from hoardd_client.export.types import ExportResult, RawRecord, RunStatus
from hoardd_client.export.worker import Worker
from hoardd_client.log import get_logger

log = get_logger(__name__)

DEFAULT_WORKERS = 10


class ExportPipeline:
    """
    Runs one scroll export: a single page fetcher feeding a fixed pool of workers.

    Every participant shares one ``RunScope``. The first failure anywhere, the
    record limit, or ``cancel()`` ends the run for all of them, and ``run``
    returns only after the fetcher and every worker have exited. Output order
    across workers is not the fetch order.
    """

    def __init__(
        self,
        backend: ScrollBackend,
        sink: SinkWriter,
        progress: ProgressTracker,
        index: str,
        query: Dict[str, Any],
        workers: int = DEFAULT_WORKERS,
        page_size: int = 1000,
        keep_alive: str = "2m",
        limit: int = 0,
        identifier_field: str = "email",
        secret_field: str = "password",
        origin_prefix: str = "leak_",
        debug: bool = False,
        poll_interval: float = 0.2,
    ):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.backend = backend
        self.sink = sink
        self.progress = progress
        self.index = index
        self.query = query
        self.num_workers = workers
        self.page_size = page_size
        self.keep_alive = keep_alive
        self.limit = limit
        self.identifier_field = identifier_field
        self.secret_field = secret_field
        self.origin_prefix = origin_prefix
        self.debug = debug
        self.poll_interval = poll_interval
        self.scope = RunScope()
        self.state = RunStatus.IDLE
        self.source: Optional[PageSource] = None
        self.workers: List[Worker] = []

    @classmethod
    def from_config(
        cls,
        config: Config,
        backend: ScrollBackend,
        sink: SinkWriter,
        progress: ProgressTracker,
        query: Dict[str, Any],
    ) -> "ExportPipeline":
        return cls(
            backend=backend,
            sink=sink,
            progress=progress,
            index=config.backend.index,
            query=query,
            workers=config.export.workers,
            page_size=config.export.page_size,
            keep_alive=config.export.keep_alive,
            limit=config.export.limit,
            identifier_field=config.export.identifier_field,
            secret_field=config.export.secret_field,
            origin_prefix=config.export.origin_prefix,
            debug=config.debug,
        )

    def cancel(self) -> bool:
        """Request an early stop; reported as CANCELLED unless the run already ended."""
        return self.scope.cancel(RunStatus.CANCELLED)

    def _participate(self, name: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        except Exception as exc:
            if self.scope.fail(exc):
                log.error("%s failed, cancelling export: %s", name, exc)
            else:
                log.debug("%s failed after the run ended: %s", name, exc)
            return None

    def _join(self, futures: List[Future]) -> None:
        pending = set(futures)
        while pending:
            try:
                _, pending = wait(pending, timeout=self.poll_interval)
            except KeyboardInterrupt:
                if self.cancel():
                    log.warning("interrupt received, cancelling export")

    def run(self) -> ExportResult:
        if self.state is not RunStatus.IDLE:
            raise RuntimeError("an ExportPipeline can only be run once")
        self.state = RunStatus.RUNNING
        log.info(
            "starting export: index=%s workers=%d page_size=%d limit=%s",
            self.index,
            self.num_workers,
            self.page_size,
            self.limit or "none",
        )

        channel: RecordChannel[RawRecord] = RecordChannel(self.scope)
        self.source = PageSource(
            self.backend,
            index=self.index,
            query=self.query,
            page_size=self.page_size,
            keep_alive=self.keep_alive,
        )
        self.workers = [
            Worker(
                worker_id=i,
                channel=channel,
                sink=self.sink,
                progress=self.progress,
                scope=self.scope,
                limit=self.limit,
                identifier_field=self.identifier_field,
                secret_field=self.secret_field,
                origin_prefix=self.origin_prefix,
                debug=self.debug,
            )
            for i in range(self.num_workers)
        ]

        started = time.monotonic()
        with ThreadPoolExecutor(max_workers=self.num_workers + 1, thread_name_prefix="hoardd-export") as pool:
            futures = [pool.submit(self._participate, "page source", self.source.run, channel, self.scope)]
            futures.extend(
                pool.submit(self._participate, f"worker {w.worker_id}", w.run) for w in self.workers
            )
            self._join(futures)

        self.state = self.scope.status or RunStatus.COMPLETED
        result = ExportResult(
            status=self.state,
            records_written=sum(w.stats.written for w in self.workers),
            records_skipped=sum(w.stats.skipped for w in self.workers),
            records_received=sum(w.stats.received for w in self.workers),
            pages_fetched=self.source.pages_fetched,
            error=self.scope.error,
            elapsed_seconds=time.monotonic() - started,
        )
        log.info("export %s in %.1fs", result.describe(), result.elapsed_seconds)
        return result
