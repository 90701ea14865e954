from __future__ import annotations

import csv
import io
import threading
from pathlib import Path
from typing import Dict, Optional, Sequence, TextIO

from hoardd_client.config import Config
from hoardd_client.errors import WriteError
from hoardd_client.export.types import ParsedRecord, RawRecord
from hoardd_client.log import get_logger
from hoardd_client.paths import OutputPaths

log = get_logger(__name__)

ROWS = "rows"
DUMP = "dump"


def csv_line(values: Sequence[str]) -> str:
    buf = io.StringIO()
    csv.writer(buf, lineterminator="").writerow(values)
    return buf.getvalue()


class _Stream:
    def __init__(self, path: Path, handle: TextIO, flush_every: int):
        self.path = path
        self.handle = handle
        self.flush_every = flush_every
        self.lock = threading.Lock()
        self.pending = 0


class SinkWriter:
    """
    Serialises appends from concurrent workers onto named output files.

    Each stream has its own lock, so a line is always written whole. Writes are
    buffered and flushed every ``flush_every`` lines and again on close. Any
    I/O failure surfaces as ``WriteError``.
    """

    def __init__(self, flush_every: int = 1000):
        self.flush_every = max(1, flush_every)
        self._streams: Dict[str, _Stream] = {}

    @classmethod
    def for_export(cls, config: Config, paths: OutputPaths) -> "SinkWriter":
        export_cfg = config.export
        sink = cls(flush_every=config.output.flush_every)
        try:
            paths.ensure_dirs()
            sink.open_stream(
                ROWS,
                paths.outfile,
                mode="w",
                header=csv_line([export_cfg.identifier_field, export_cfg.secret_field, export_cfg.origin_column]),
            )
            if paths.dumpfile is not None:
                mode = "a" if config.output.dump_mode == "append" else "w"
                sink.open_stream(DUMP, paths.dumpfile, mode=mode)
        except OSError as exc:
            sink.close()
            raise WriteError(f"could not prepare output directories: {exc}") from exc
        except WriteError:
            sink.close()
            raise
        return sink

    def open_stream(self, name: str, path: Path, mode: str = "w", header: Optional[str] = None) -> None:
        if name in self._streams:
            raise ValueError(f"stream already open: {name}")
        try:
            handle = Path(path).open(mode, encoding="utf-8", newline="")
        except OSError as exc:
            raise WriteError(f"could not open {path}: {exc}") from exc
        if header is not None:
            try:
                handle.write(header + "\n")
            except OSError as exc:
                handle.close()
                raise WriteError(f"could not write header to {path}: {exc}") from exc
        self._streams[name] = _Stream(Path(path), handle, self.flush_every)
        log.debug("opened %s stream at %s (mode=%s)", name, path, mode)

    def append(self, name: str, line: str) -> None:
        stream = self._streams.get(name)
        if stream is None:
            raise WriteError(f"no such output stream: {name}")
        with stream.lock:
            try:
                stream.handle.write(line + "\n")
                stream.pending += 1
                if stream.pending >= stream.flush_every:
                    stream.handle.flush()
                    stream.pending = 0
            except (OSError, ValueError) as exc:
                raise WriteError(f"write to {stream.path} failed: {exc}") from exc

    def write_record(self, record: ParsedRecord, origin: str) -> None:
        self.append(ROWS, csv_line([record.identifier, record.secret, origin]))

    def write_raw(self, raw: RawRecord) -> None:
        if DUMP not in self._streams:
            return
        self.append(DUMP, raw.source.decode("utf-8", errors="replace"))

    def close(self) -> None:
        first_error: Optional[OSError] = None
        for stream in self._streams.values():
            with stream.lock:
                try:
                    stream.handle.close()
                except OSError as exc:
                    first_error = first_error or exc
        self._streams.clear()
        if first_error is not None:
            raise WriteError(f"closing output failed: {first_error}") from first_error

    def __enter__(self) -> "SinkWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
