from __future__ import annotations

import threading
from typing import Callable, List, Optional

from tqdm import tqdm

from hoardd_client.export.types import ProgressUpdate

ProgressListener = Callable[[ProgressUpdate], None]


class ProgressTracker:
    """
    Shared running count of written records, rendered against the count estimate.

    ``increment`` is the only mutation and is serialised; ``processed`` may be
    read from any thread without locking since the value only grows.
    """

    def __init__(
        self,
        total: int,
        enabled: bool = True,
        listeners: Optional[List[ProgressListener]] = None,
        desc: str = "Exporting",
    ):
        self.total = total
        self._processed = 0
        self._lock = threading.Lock()
        self._listeners = list(listeners or [])
        self._bar = tqdm(total=total, unit="rec", unit_scale=True, desc=desc, disable=not enabled)

    @property
    def processed(self) -> int:
        return self._processed

    def snapshot(self) -> ProgressUpdate:
        return ProgressUpdate(processed=self._processed, total=self.total)

    def increment(self, n: int = 1) -> int:
        with self._lock:
            self._processed += n
            value = self._processed
            self._bar.update(n)
            # updates reach listeners in count order
            if self._listeners:
                update = ProgressUpdate(processed=value, total=self.total)
                for listener in self._listeners:
                    listener(update)
        return value

    def close(self) -> None:
        self._bar.close()
