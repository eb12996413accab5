"""In-process record store."""

from __future__ import annotations

import copy
import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple

from . import paths
from .base import RecordExistsError, StoreValidationError
from .record_store import BaseRecordStore, Mutation, Record


class InMemoryRecordStore(BaseRecordStore):
    """Thread-safe dict-backed store; records are copied on the way in and out."""

    def __init__(self) -> None:
        self._records: Dict[str, Record] = {}
        self._lock = threading.RLock()

    def _doc(self, path: str) -> str:
        if not paths.is_document_path(path):
            raise StoreValidationError(f"Not a document path: {path}")
        return path

    def get(self, path: str) -> Optional[Record]:
        with self._lock:
            record = self._records.get(self._doc(path))
            return copy.deepcopy(record) if record is not None else None

    def set(self, path: str, data: Mapping[str, Any]) -> None:
        with self._lock:
            self._records[self._doc(path)] = copy.deepcopy(dict(data))

    def create_all(self, records: Mapping[str, Mapping[str, Any]]) -> None:
        with self._lock:
            for path in records:
                if self._doc(path) in self._records:
                    raise RecordExistsError(f"Record already exists: {path}")
            for path, data in records.items():
                self._records[path] = copy.deepcopy(dict(data))

    def transact(self, path: str, mutate: Mutation) -> Record:
        with self._lock:
            current = self._records.get(self._doc(path))
            new = mutate(copy.deepcopy(current) if current is not None else None)
            self._records[path] = copy.deepcopy(dict(new))
            return copy.deepcopy(new)

    def list(
        self,
        collection_path: str,
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Record]]:
        prefix = collection_path.rstrip("/") + "/"
        depth = len(paths.split(collection_path)) + 1
        results: List[Tuple[str, Record]] = []
        with self._lock:
            for path in sorted(self._records):
                if not path.startswith(prefix) or len(path.split("/")) != depth:
                    continue
                record = self._records[path]
                if filters and any(record.get(k) != v for k, v in filters.items()):
                    continue
                results.append((path.rsplit("/", 1)[1], copy.deepcopy(record)))
                if limit is not None and len(results) >= limit:
                    break
        return results

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
