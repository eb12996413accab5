"""Record store boundary."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from .base import RecordNotFoundError

Record = Dict[str, Any]
Mutation = Callable[[Optional[Record]], Record]


class BaseRecordStore(ABC):
    """Document store addressed by slash-separated paths."""

    @abstractmethod
    def get(self, path: str) -> Optional[Record]:
        """Return the record at ``path`` or None."""

    @abstractmethod
    def set(self, path: str, data: Mapping[str, Any]) -> None:
        """Overwrite the full record at ``path``."""

    @abstractmethod
    def create_all(self, records: Mapping[str, Mapping[str, Any]]) -> None:
        """Create every record atomically; raise RecordExistsError if any exists."""

    @abstractmethod
    def transact(self, path: str, mutate: Mutation) -> Record:
        """Atomically replace the record at ``path`` with ``mutate(current)``.

        ``mutate`` may run more than once when the backend retries on
        contention, so it must not have side effects. Exceptions raised by
        ``mutate`` abort the write and propagate.
        """

    @abstractmethod
    def list(
        self,
        collection_path: str,
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Record]]:
        """Return ``(id, record)`` pairs with equality ``filters`` applied."""

    def healthcheck(self) -> Dict[str, Any]:
        return {"store": type(self).__name__, "status": "ok"}

    def append(
        self,
        path: str,
        field: str,
        entry: Union[Mapping[str, Any], Callable[[Record], Mapping[str, Any]]],
        *,
        precondition: Optional[Callable[[Record], None]] = None,
        updates: Optional[Mapping[str, Any]] = None,
    ) -> Record:
        """Append ``entry`` to the ordered log ``field`` in one atomic write.

        ``entry`` may be a callable building the entry from the current
        record. ``precondition`` sees the current record and raises to reject
        the append; ``updates`` are applied in the same write.
        """

        def _mutate(current: Optional[Record]) -> Record:
            if current is None:
                raise RecordNotFoundError(f"Record not found: {path}")
            if precondition is not None:
                precondition(current)
            new = dict(current)
            item = entry(current) if callable(entry) else entry
            new[field] = list(current.get(field) or []) + [dict(item)]
            if updates:
                new.update(updates)
            return new

        return self.transact(path, _mutate)
