"""Firestore-backed record store."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from google.cloud import firestore

from ..base import (
    RetryPolicy,
    StoreCircuitBreaker,
    StoreError,
    execute_with_retry,
    translate_error,
)
from ..record_store import BaseRecordStore, Mutation, Record


logger = logging.getLogger(__name__)


class _MutationAborted(Exception):
    """Carries an error raised by a transaction callback past translation."""

    def __init__(self, error: Exception) -> None:
        super().__init__(str(error))
        self.error = error


class FirestoreRecordStore(BaseRecordStore):
    """Record store over a ``google.cloud.firestore.Client``.

    Paths map one-to-one onto Firestore document and collection paths.
    Multi-record creates use a write batch with ``create`` semantics and
    read-modify-write goes through a Firestore transaction.
    """

    def __init__(
        self,
        client: firestore.Client,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        breaker: Optional[StoreCircuitBreaker] = None,
    ) -> None:
        self._client = client # Firestore client
        self._policy = retry_policy or RetryPolicy.from_env() # Retry policy
        self._breaker = breaker or StoreCircuitBreaker.from_env() # Circuit breaker

    @property
    def client(self) -> firestore.Client:
        return self._client

    def _run(self, operation: str, func):
        try:
            return execute_with_retry(operation, func, policy=self._policy, breaker=self._breaker)
        except _MutationAborted as e:
            raise e.error from None
        except StoreError:
            raise
        except Exception as e:
            raise translate_error(operation, e) from e

    def get(self, path: str) -> Optional[Record]:
        def _get():
            snapshot = self._client.document(path).get()
            return snapshot.to_dict() if snapshot.exists else None

        return self._run(f"get {path}", _get)

    def set(self, path: str, data: Mapping[str, Any]) -> None:
        self._run(f"set {path}", lambda: self._client.document(path).set(dict(data)))

    def create_all(self, records: Mapping[str, Mapping[str, Any]]) -> None:
        def _commit():
            batch = self._client.batch()
            for path, data in records.items():
                batch.create(self._client.document(path), dict(data))
            batch.commit()

        self._run(f"create_all {len(records)} records", _commit)

    def transact(self, path: str, mutate: Mutation) -> Record:
        ref = self._client.document(path)

        @firestore.transactional
        def _apply(transaction) -> Record:
            snapshot = ref.get(transaction=transaction)
            current = snapshot.to_dict() if snapshot.exists else None
            try:
                new = mutate(current)
            except Exception as e:
                raise _MutationAborted(e) from e
            transaction.set(ref, dict(new))
            return new

        return self._run(f"transact {path}", lambda: _apply(self._client.transaction()))

    def list(
        self,
        collection_path: str,
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Record]]:
        def _query():
            query = self._client.collection(collection_path)
            for field, value in (filters or {}).items():
                query = query.where(filter=firestore.FieldFilter(field, "==", value))
            if limit is not None:
                query = query.limit(limit)
            return [(doc.id, doc.to_dict()) for doc in query.stream()]

        return self._run(f"list {collection_path}", _query)

    def healthcheck(self) -> Dict[str, Any]:
        try:
            self._run("healthcheck", lambda: next(iter(self._client.collections()), None))
            return {"store": "firestore", "status": "ok"}
        except StoreError as e:
            logger.warning(f"Firestore healthcheck failed: {e}")
            return {"store": "firestore", "status": "degraded", "error": e.error_code}
