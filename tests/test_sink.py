import csv
import threading
from pathlib import Path

import pytest

from hoardd_client.config import Config
from hoardd_client.errors import WriteError
from hoardd_client.export.sink import ROWS, SinkWriter, csv_line
from hoardd_client.export.types import ParsedRecord, RawRecord
from hoardd_client.paths import OutputPaths


def _paths(tmp_path: Path, dump: bool = True) -> OutputPaths:
    return OutputPaths(
        outfile=tmp_path / "exports" / "rows.csv",
        dumpfile=(tmp_path / "exports" / "dump.jsonl") if dump else None,
    )


def test_for_export_writes_header_and_rows(tmp_path: Path):
    paths = _paths(tmp_path)
    with SinkWriter.for_export(Config(), paths) as sink:
        sink.write_record(ParsedRecord("a@x.com", "pw,with,commas"), "linkedin")
        sink.write_raw(RawRecord(source=b'{"email":"a@x.com"}', index="leak_linkedin"))

    with paths.outfile.open(newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows == [["email", "password", "breach_name"], ["a@x.com", "pw,with,commas", "linkedin"]]
    assert paths.dumpfile.read_text(encoding="utf-8") == '{"email":"a@x.com"}\n'


def test_row_file_is_truncated_but_dump_is_appended(tmp_path: Path):
    paths = _paths(tmp_path)
    for _ in range(2):
        with SinkWriter.for_export(Config(), paths) as sink:
            sink.write_record(ParsedRecord("a@x.com", "pw"), "x")
            sink.write_raw(RawRecord(source=b"{}", index="leak_x"))

    assert paths.outfile.read_text(encoding="utf-8").splitlines() == ["email,password,breach_name", "a@x.com,pw,x"]
    assert paths.dumpfile.read_text(encoding="utf-8").splitlines() == ["{}", "{}"]


def test_dump_truncate_mode(tmp_path: Path):
    paths = _paths(tmp_path)
    cfg = Config()
    cfg.output.dump_mode = "truncate"
    for _ in range(2):
        with SinkWriter.for_export(cfg, paths) as sink:
            sink.write_raw(RawRecord(source=b"{}", index="leak_x"))
    assert paths.dumpfile.read_text(encoding="utf-8").splitlines() == ["{}"]


def test_write_raw_without_dump_stream_is_noop(tmp_path: Path):
    with SinkWriter.for_export(Config(), _paths(tmp_path, dump=False)) as sink:
        sink.write_raw(RawRecord(source=b"{}"))
    assert [p.name for p in (tmp_path / "exports").iterdir()] == ["rows.csv"]


def test_concurrent_appends_never_interleave(tmp_path: Path):
    sink = SinkWriter(flush_every=7)
    sink.open_stream(ROWS, tmp_path / "rows.csv")

    def writer(n):
        for i in range(200):
            sink.append(ROWS, csv_line([f"user{n}-{i}@x.com", "p" * 50, f"src{n}"]))

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    sink.close()

    lines = (tmp_path / "rows.csv").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1600
    assert len(set(lines)) == 1600
    assert all(len(line.split(",")) == 3 and line.startswith("user") for line in lines)


def test_append_after_close_raises_write_error(tmp_path: Path):
    sink = SinkWriter()
    sink.open_stream(ROWS, tmp_path / "rows.csv")
    handle = sink._streams[ROWS].handle
    handle.close()
    with pytest.raises(WriteError):
        sink.append(ROWS, "late")


def test_unknown_stream_raises_write_error():
    with pytest.raises(WriteError, match="no such output stream"):
        SinkWriter().append("missing", "line")


def test_open_failure_raises_write_error(tmp_path: Path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    with pytest.raises(WriteError, match="could not open"):
        SinkWriter().open_stream(ROWS, blocker / "rows.csv")


class _BrokenHandle:
    def __init__(self):
        self.closed = False

    def write(self, text):
        raise OSError(28, "No space left on device")

    def close(self):
        self.closed = True


def test_header_failure_closes_the_new_handle(tmp_path: Path, monkeypatch):
    handle = _BrokenHandle()
    monkeypatch.setattr(Path, "open", lambda self, *args, **kwargs: handle)
    sink = SinkWriter()

    with pytest.raises(WriteError, match="could not write header"):
        sink.open_stream(ROWS, tmp_path / "rows.csv", header="email,password,breach_name")

    assert handle.closed
    with pytest.raises(WriteError, match="no such output stream"):
        sink.append(ROWS, "a@x.com,pw,x")
