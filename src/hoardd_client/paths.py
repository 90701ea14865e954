from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import Config
from .log import get_logger

log = get_logger(__name__)


@dataclass
class OutputPaths:
    outfile: Path
    dumpfile: Optional[Path]

    def ensure_dirs(self) -> None:
        self.outfile.parent.mkdir(parents=True, exist_ok=True)
        if self.dumpfile is not None:
            self.dumpfile.parent.mkdir(parents=True, exist_ok=True)


def default_outfile(config: Config, now: Optional[float] = None) -> str:
    stamp = int(now if now is not None else time.time())
    domain = (config.query.domain or "").strip()
    if domain:
        return f"{domain}_{stamp}.csv"
    return f"output_{stamp}.csv"


def resolve_output_paths(config: Config, now: Optional[float] = None) -> OutputPaths:
    outfile = (config.output.outfile or "").strip()
    if not outfile:
        outfile = default_outfile(config, now=now)
        log.warning("no outfile specified, automatically generating one: %s", outfile)
    dumpfile = (config.output.dumpfile or "").strip()
    return OutputPaths(
        outfile=Path(outfile).expanduser(),
        dumpfile=Path(dumpfile).expanduser() if dumpfile else None,
    )
