"""
In-Memory Storage Implementation

Dict-backed record stores used by tests and for throwaway sessions.

Transactions are implemented by snapshotting every record store when
the outermost scope opens and restoring the snapshot if the scope exits
with an exception. The audit log is append-only and is never rolled back.
"""

from contextlib import contextmanager
from typing import Iterator, Optional
from uuid import UUID

from pydantic import BaseModel

from taxledger.models.audit import AuditEvent
from taxledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    Predicate,
    RecordStoreInterface,
    RecordT,
    SortKey,
    StorageInterface,
)


class InMemoryRecordStore(RecordStoreInterface[RecordT]):
    """
    One collection of records kept in a dict keyed by id.

    Records are copied on the way in and on the way out, so a caller
    mutating a returned record never changes stored state without
    calling update().
    """

    def __init__(self, name: str):
        self.name = name
        self._records: dict[UUID, BaseModel] = {}

    def _copy(self, record):
        return record.model_copy(deep=True)

    def insert(self, record):
        if record.id in self._records:
            raise DuplicateError(f"{self.name} record already exists: {record.id}")
        self._records[record.id] = self._copy(record)
        return record

    def update(self, record):
        if record.id not in self._records:
            raise NotFoundError(f"{self.name} record not found: {record.id}")
        self._records[record.id] = self._copy(record)
        return record

    def delete(self, record_id: UUID) -> bool:
        return self._records.pop(record_id, None) is not None

    def get(self, record_id: UUID):
        record = self._records.get(record_id)
        return self._copy(record) if record is not None else None

    def query(
        self,
        predicate: Optional[Predicate] = None,
        key: Optional[SortKey] = None,
        reverse: bool = False,
    ) -> list:
        records = [self._copy(r) for r in self._records.values()]
        if predicate is not None:
            records = [r for r in records if predicate(r)]
        if key is not None:
            records.sort(key=key, reverse=reverse)
        elif reverse:
            records.reverse()
        return records

    def snapshot(self) -> dict[UUID, BaseModel]:
        return dict(self._records)

    def restore(self, snapshot: dict[UUID, BaseModel]) -> None:
        self._records = snapshot


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]


class InMemoryStorage(StorageInterface):
    """
    Complete ledger store held in process memory.
    """

    def __init__(self):
        self.payments = InMemoryRecordStore("payment")
        self.summaries = InMemoryRecordStore("summary")
        self.exchange_rates = InMemoryRecordStore("exchange_rate")
        self.debts = InMemoryRecordStore("debt")
        self.debt_payments = InMemoryRecordStore("debt_payment")
        self.maintenance = InMemoryRecordStore("maintenance")
        self.audit = InMemoryAuditStorage()
        self._depth = 0

    def _stores(self) -> list[InMemoryRecordStore]:
        return [
            self.payments,
            self.summaries,
            self.exchange_rates,
            self.debts,
            self.debt_payments,
            self.maintenance,
        ]

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStorage"]:
        if self._depth > 0:
            # Join the outer scope; it owns commit and rollback
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        snapshots = [store.snapshot() for store in self._stores()]
        self._depth = 1
        try:
            yield self
        except BaseException:
            for store, snapshot in zip(self._stores(), snapshots):
                store.restore(snapshot)
            raise
        finally:
            self._depth = 0
