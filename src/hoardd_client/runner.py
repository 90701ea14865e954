from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, List, Optional

from hoardd_client.backend.client import SearchClient
from hoardd_client.backend.queries import build_query
from hoardd_client.config import Config, redacted_config, validate_config
from hoardd_client.errors import BackendError, WriteError
from hoardd_client.export.pipeline import ExportPipeline
from hoardd_client.export.progress import ProgressListener, ProgressTracker
from hoardd_client.export.sink import SinkWriter
from hoardd_client.export.types import ExportResult
from hoardd_client.log import get_logger
from hoardd_client.paths import resolve_output_paths

log = get_logger(__name__)


def check_health(client: SearchClient, index: str) -> str:
    status = client.cluster_health(index)
    log.info("cluster health: %s", status)
    if status == "red":
        raise BackendError("Cluster Health is red, exiting. Contact Support.")
    return status


def _close_after_error(sink: SinkWriter) -> None:
    try:
        sink.close()
    except WriteError as exc:
        log.error("%s", exc)


def run_export(
    config: Config,
    client: Optional[SearchClient] = None,
    listeners: Optional[List[ProgressListener]] = None,
    on_pipeline: Optional[Callable[[ExportPipeline], None]] = None,
) -> ExportResult:
    """
    Connect, size, and run one export described by ``config``.

    ``on_pipeline`` receives the pipeline before it starts so callers can wire
    up their own cancellation. A client connected here is closed before
    returning; an injected one is left to the caller.
    """
    validate_config(config)
    if config.debug:
        log.debug("config dump: %s", redacted_config(config))

    query = build_query(config.query)
    if client is not None:
        return _export(config, client, query, listeners, on_pipeline)
    client = SearchClient.connect(config.backend)
    try:
        return _export(config, client, query, listeners, on_pipeline)
    finally:
        client.close()


def _export(
    config: Config,
    client: SearchClient,
    query: Dict[str, Any],
    listeners: Optional[List[ProgressListener]],
    on_pipeline: Optional[Callable[[ExportPipeline], None]],
) -> ExportResult:
    if config.backend.health_check:
        check_health(client, config.backend.index)
    if config.verbose or config.debug:
        print(f"[hoardd] Raw Query: {json.dumps(query)}")

    print("[hoardd] Counting total hits, please wait...")
    total = client.count(config.backend.index, query)
    if total == 0:
        raise BackendError("0 results returned, check your query")
    if config.export.limit == 0:
        log.warning("no limit defined, this might take a LONG time")

    paths = resolve_output_paths(config)
    sink = SinkWriter.for_export(config, paths)
    estimate = min(total, config.export.limit) if config.export.limit else total
    progress = ProgressTracker(estimate, enabled=config.export.progress, listeners=listeners)
    started = time.monotonic()
    try:
        pipeline = ExportPipeline.from_config(config, client, sink, progress, query)
        if on_pipeline is not None:
            on_pipeline(pipeline)
        result = pipeline.run()
    except BaseException:
        progress.close()
        _close_after_error(sink)
        raise
    progress.close()
    sink.close()
    log.info("Total time %.1fs", time.monotonic() - started)
    print(f"[hoardd] Rows written to: {paths.outfile}")
    if paths.dumpfile is not None:
        print(f"[hoardd] Raw documents written to: {paths.dumpfile}")
    return result
