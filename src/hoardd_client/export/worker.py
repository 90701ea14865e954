from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

from hoardd_client.errors import ParseError
from hoardd_client.export.channel import RecordChannel
from hoardd_client.export.progress import ProgressTracker
from hoardd_client.export.scope import RunScope
from hoardd_client.export.sink import SinkWriter
from hoardd_client.export.types import ParsedRecord, RawRecord, RunStatus
from hoardd_client.log import get_logger

log = get_logger(__name__)

NULL_SENTINEL = "null"


def _field(doc: dict, name: str) -> str:
    value: Any = doc.get(name)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, bool)):
        return json.dumps(value)
    raise ParseError(f"field {name!r} is not a scalar: {type(value).__name__}")


def parse_record(raw: RawRecord, identifier_field: str = "email", secret_field: str = "password") -> ParsedRecord:
    try:
        doc = json.loads(raw.source)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ParseError(f"record {raw.doc_id or '?'} in {raw.index or '?'} is not valid JSON: {exc}") from exc
    if not isinstance(doc, dict):
        raise ParseError(f"record {raw.doc_id or '?'} in {raw.index or '?'} is not a JSON object")
    return ParsedRecord(identifier=_field(doc, identifier_field), secret=_field(doc, secret_field))


def is_accepted(record: ParsedRecord) -> bool:
    return bool(record.identifier) and record.identifier != NULL_SENTINEL


def origin_tag(index: str, prefix: str = "leak_") -> str:
    if prefix and index.startswith(prefix):
        return index[len(prefix):]
    return index


@dataclass
class WorkerStats:
    received: int = 0
    written: int = 0
    skipped: int = 0


class Worker:
    """One consumer: receive, parse, filter, write, count, repeat."""

    def __init__(
        self,
        worker_id: int,
        channel: RecordChannel[RawRecord],
        sink: SinkWriter,
        progress: ProgressTracker,
        scope: RunScope,
        limit: int = 0,
        identifier_field: str = "email",
        secret_field: str = "password",
        origin_prefix: str = "leak_",
        debug: bool = False,
    ):
        self.worker_id = worker_id
        self.channel = channel
        self.sink = sink
        self.progress = progress
        self.scope = scope
        self.limit = limit
        self.identifier_field = identifier_field
        self.secret_field = secret_field
        self.origin_prefix = origin_prefix
        self.debug = debug
        self.stats = WorkerStats()

    def handle(self, raw: RawRecord) -> Optional[ParsedRecord]:
        if self.debug:
            log.debug("Hit: %s", raw.source.decode("utf-8", errors="replace"))
        self.stats.received += 1
        self.sink.write_raw(raw)
        record = parse_record(raw, self.identifier_field, self.secret_field)
        if not is_accepted(record):
            self.stats.skipped += 1
            return None
        self.sink.write_record(record, origin_tag(raw.index, self.origin_prefix))
        self.stats.written += 1
        processed = self.progress.increment()
        if self.limit and processed >= self.limit:
            if self.scope.cancel(RunStatus.LIMIT_REACHED):
                log.warning("Limit of %d results reached, stopping", self.limit)
        return record

    def run(self) -> WorkerStats:
        for raw in self.channel:
            self.handle(raw)
            if self.scope.cancelled:
                break
        return self.stats
