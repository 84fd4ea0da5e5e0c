"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Use SQLite through SQLAlchemy for the real ledger
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from storage implementation

The interface is intentionally simple - a generic record store with
insert/update/delete/get/query-by-predicate, plus a transaction scope.
Filtering and ordering happen in Python; a personal ledger is small.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Callable, Generic, Optional, TypeVar
from uuid import UUID

from taxledger.models.audit import AuditEvent
from taxledger.models.debt import Debt, DebtPayment
from taxledger.models.maintenance import MaintenanceRecord
from taxledger.models.payment import (
    ExchangeRateRecord,
    MonthlySummary,
    PaymentRecord,
)


RecordT = TypeVar("RecordT")

Predicate = Callable[[Any], bool]
SortKey = Callable[[Any], Any]


class RecordStoreInterface(ABC, Generic[RecordT]):
    """
    Abstract interface for one collection of records.

    Records are pydantic models with an `id: UUID` field.
    Every method joins the surrounding transaction if there is one,
    otherwise it commits on its own.
    """

    @abstractmethod
    def insert(self, record: RecordT) -> RecordT:
        """
        Insert a new record.

        Raises:
            DuplicateError: If a record with the same id exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def update(self, record: RecordT) -> RecordT:
        """
        Replace the stored record that has the same id.

        Raises:
            NotFoundError: If the record doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, record_id: UUID) -> bool:
        """
        Delete a record by ID.

        Returns:
            True if a record was deleted, False if none existed
        """
        pass

    @abstractmethod
    def get(self, record_id: UUID) -> Optional[RecordT]:
        """Retrieve a record by ID, None if not found."""
        pass

    @abstractmethod
    def query(
        self,
        predicate: Optional[Predicate] = None,
        key: Optional[SortKey] = None,
        reverse: bool = False,
    ) -> list[RecordT]:
        """
        List records matching a predicate.

        Args:
            predicate: Keep records for which this returns True (all if None)
            key: Sort key; insertion order if None
            reverse: Sort descending

        Returns:
            Ordered list of matching records
        """
        pass

    def first(self, predicate: Predicate) -> Optional[RecordT]:
        """First record matching the predicate, or None."""
        matches = self.query(predicate)
        return matches[0] if matches else None


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events of one user action, in chronological order."""
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """All events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent events, newest first."""
        pass


class StorageInterface(ABC):
    """
    A complete ledger store: one record store per record type
    and a transaction scope spanning all of them.

    Usage:
        with storage.transaction():
            storage.payments.insert(payment)
            storage.summaries.update(summary)
        # both writes commit together, or neither does
    """

    payments: RecordStoreInterface[PaymentRecord]
    summaries: RecordStoreInterface[MonthlySummary]
    exchange_rates: RecordStoreInterface[ExchangeRateRecord]
    debts: RecordStoreInterface[Debt]
    debt_payments: RecordStoreInterface[DebtPayment]
    maintenance: RecordStoreInterface[MaintenanceRecord]
    audit: AuditStorageInterface

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """
        Scope in which all writes commit together.

        Nested scopes join the outermost one. Any exception raised
        inside rolls back every write made in the outermost scope
        and propagates to the caller.
        """
        pass

    def close(self) -> None:
        """Release backend resources."""


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
