"""In-memory sink useful for debugging and tests."""

from __future__ import annotations

import threading
from typing import List, Mapping


class InMemorySink:
    def __init__(self) -> None:
        self.records: List[Mapping[str, object]] = []
        self._lock = threading.Lock()

    def emit(self, record: Mapping[str, object]) -> None:
        with self._lock:
            self.records.append(dict(record))

    def clear(self) -> None:
        with self._lock:
            self.records.clear()
