from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


@dataclass(frozen=True)
class RawRecord:
    source: bytes
    index: str = ""
    doc_id: str = ""


@dataclass
class Page:
    records: List[RawRecord] = field(default_factory=list)
    scroll_id: Optional[str] = None
    exhausted: bool = False
    took_ms: int = 0


@dataclass(frozen=True)
class ParsedRecord:
    identifier: str
    secret: str


@dataclass(frozen=True)
class ProgressUpdate:
    processed: int
    total: int


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    LIMIT_REACHED = "limit_reached"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class ExportResult:
    status: RunStatus
    records_written: int
    records_skipped: int
    records_received: int = 0
    pages_fetched: int = 0
    error: Optional[BaseException] = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status in (RunStatus.COMPLETED, RunStatus.LIMIT_REACHED)

    def describe(self) -> str:
        if self.status is RunStatus.COMPLETED:
            outcome = "completed normally"
        elif self.status is RunStatus.LIMIT_REACHED:
            outcome = "completed at limit"
        elif self.status is RunStatus.CANCELLED:
            outcome = "cancelled"
        else:
            kind = getattr(self.error, "kind", type(self.error).__name__)
            outcome = f"failed with {kind} error: {self.error}"
        return f"{outcome} (written={self.records_written}, skipped={self.records_skipped})"
