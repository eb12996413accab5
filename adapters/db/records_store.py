"""Generic tenant-scoped records (clients, drivers, vehicles, ...)."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Tuple

from .base import StoreValidationError
from .paths import TenantScope
from .record_store import BaseRecordStore, Record

# orders change only through the lifecycle engine
READ_ONLY_COLLECTIONS = frozenset({"orders"})


class TenantRecordsRepository:
    """Plain get/put access to the owned collections of one tenant."""

    def __init__(self, store: BaseRecordStore) -> None:
        self._store = store

    def get(self, scope: TenantScope, collection: str, record_id: str) -> Optional[Record]:
        return self._store.get(scope.record(collection, record_id))

    def list(self, scope: TenantScope, collection: str, limit: Optional[int] = None) -> List[Tuple[str, Record]]:
        return self._store.list(scope.collection(collection), limit=limit)

    def put(self, scope: TenantScope, collection: str, record_id: str, data: Mapping[str, Any]) -> Record:
        if collection in READ_ONLY_COLLECTIONS:
            raise StoreValidationError(f"Collection {collection} is not writable here")
        if not isinstance(data, Mapping):
            raise StoreValidationError("Record body must be an object")
        record = dict(data)
        self._store.set(scope.record(collection, record_id), record)
        return record
