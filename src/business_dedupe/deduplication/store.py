"""Record store contract and an in-memory implementation."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Protocol, runtime_checkable

from business_dedupe.entities.core import BusinessRecord


@runtime_checkable
class RecordStore(Protocol):
    """Read access to persisted business records by id."""

    def get(self, record_id: str) -> Optional[BusinessRecord]:
        ...

    def list(self) -> Iterable[BusinessRecord]:
        ...


class InMemoryRecordStore:
    """Thread-safe dictionary backed store used when no external store is supplied."""

    def __init__(self, records: Iterable[BusinessRecord] | None = None) -> None:
        self._records: Dict[str, BusinessRecord] = {}
        self._lock = threading.Lock()
        if records is not None:
            self.put_many(records)

    def put(self, record: BusinessRecord) -> None:
        with self._lock:
            self._records[record.id] = record

    def put_many(self, records: Iterable[BusinessRecord]) -> None:
        with self._lock:
            for record in records:
                self._records[record.id] = record

    def get(self, record_id: str) -> Optional[BusinessRecord]:
        with self._lock:
            return self._records.get(record_id)

    def delete(self, record_id: str) -> bool:
        with self._lock:
            return self._records.pop(record_id, None) is not None

    def list(self) -> List[BusinessRecord]:
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


__all__ = ["RecordStore", "InMemoryRecordStore"]
