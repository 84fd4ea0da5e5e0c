"""
SQL Storage Implementation (SQLAlchemy)

DESIGN DECISION: SQLite through SQLAlchemy is the default backend because:
1. Single user, single process - an embedded database is enough
2. Real transactions: a payment and its summary update commit together
3. No server setup; the ledger is one file

Each table mirrors one pydantic record model column-for-column, so rows
convert with model_dump() on the way in and model_validate(from_attributes)
on the way out. Filtering stays in Python, like the in-memory backend.
"""

import datetime as dt
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterator, Optional
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    create_engine,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Mapped, Session, declarative_base, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from taxledger.config import get_settings
from taxledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from taxledger.models.debt import (
    Debt,
    DebtCurrency,
    DebtPayment,
    DebtStatus,
    DebtType,
)
from taxledger.models.maintenance import MaintenanceRecord, MaintenanceType
from taxledger.models.payment import (
    COMPANY_MAX_LENGTH,
    Currency,
    ExchangeRateRecord,
    MonthlySummary,
    PaymentRecord,
)
from taxledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    Predicate,
    RecordStoreInterface,
    RecordT,
    SortKey,
    StorageError,
    StorageInterface,
)


Base = declarative_base()


class ExactDecimal(TypeDecorator):
    """Decimal kept as its exact text; SQLite would round Numeric through float."""

    impl = String(40)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(Decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


MONEY = ExactDecimal()
RATE = ExactDecimal()


def _enum_values(enum_class) -> list[str]:
    return [member.value for member in enum_class]


def _enum(enum_class) -> SAEnum:
    """Store enums by value in a plain string column."""
    return SAEnum(
        enum_class,
        native_enum=False,
        values_callable=_enum_values,
        length=64,
        validate_strings=True,
    )


# =============================================================================
# TABLES
# =============================================================================

class PaymentRow(Base):
    __tablename__ = "payments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    company: Mapped[str] = mapped_column(String(COMPANY_MAX_LENGTH), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    currency: Mapped[Currency] = mapped_column(_enum(Currency), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    exchange_rate: Mapped[Decimal] = mapped_column(RATE, nullable=False)
    converted_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class MonthlySummaryRow(Base):
    __tablename__ = "monthly_summaries"
    __table_args__ = (UniqueConstraint("year", "month", name="uq_summary_period"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    total_income: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    cumulative_income: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    payment_count: Mapped[int] = mapped_column(Integer, nullable=False)
    last_updated: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ExchangeRateRow(Base):
    __tablename__ = "exchange_rates"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    currency: Mapped[Currency] = mapped_column(_enum(Currency), nullable=False)
    rate: Mapped[Decimal] = mapped_column(RATE, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    fetched_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class DebtRow(Base):
    __tablename__ = "debts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    person_name: Mapped[str] = mapped_column(String(200), nullable=False)
    original_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    remaining_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    currency: Mapped[DebtCurrency] = mapped_column(_enum(DebtCurrency), nullable=False)
    type: Mapped[DebtType] = mapped_column(_enum(DebtType), nullable=False)
    status: Mapped[DebtStatus] = mapped_column(_enum(DebtStatus), nullable=False)
    created_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    due_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    last_updated: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class DebtPaymentRow(Base):
    __tablename__ = "debt_payments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    debt_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")


class MaintenanceRow(Base):
    __tablename__ = "maintenance_records"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    mileage: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[MaintenanceType] = mapped_column(_enum(MaintenanceType), nullable=False)
    cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    currency: Mapped[Currency] = mapped_column(_enum(Currency), nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    next_service_mileage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    next_service_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class AuditEventRow(Base):
    __tablename__ = "audit_events"

    event_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    timestamp: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    event_type: Mapped[AuditEventType] = mapped_column(_enum(AuditEventType), nullable=False)
    severity: Mapped[AuditSeverity] = mapped_column(_enum(AuditSeverity), nullable=False)
    entity_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    entity_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    correlation_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    error_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_user_action: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


# =============================================================================
# STORES
# =============================================================================

class SQLRecordStore(RecordStoreInterface[RecordT]):
    """
    One table exposed as a record store.

    Every operation runs inside storage.transaction(), joining the
    caller's scope when one is open.
    """

    def __init__(self, storage: "SQLStorage", row_class, model_class, name: str):
        self._storage = storage
        self._row_class = row_class
        self._model_class = model_class
        self.name = name

    def _to_model(self, row):
        return self._model_class.model_validate(row, from_attributes=True)

    def insert(self, record):
        with self._storage.transaction() as session:
            if session.get(self._row_class, record.id) is not None:
                raise DuplicateError(f"{self.name} record already exists: {record.id}")
            session.add(self._row_class(**record.model_dump()))
            try:
                session.flush()
            except IntegrityError as e:
                raise DuplicateError(f"Failed to insert {self.name}: {e.orig}") from e
        return record

    def update(self, record):
        with self._storage.transaction() as session:
            row = session.get(self._row_class, record.id)
            if row is None:
                raise NotFoundError(f"{self.name} record not found: {record.id}")
            for column, value in record.model_dump().items():
                setattr(row, column, value)
            session.flush()
        return record

    def delete(self, record_id: UUID) -> bool:
        with self._storage.transaction() as session:
            row = session.get(self._row_class, record_id)
            if row is None:
                return False
            session.delete(row)
            session.flush()
        return True

    def get(self, record_id: UUID):
        with self._storage.transaction() as session:
            row = session.get(self._row_class, record_id)
            return self._to_model(row) if row is not None else None

    def query(
        self,
        predicate: Optional[Predicate] = None,
        key: Optional[SortKey] = None,
        reverse: bool = False,
    ) -> list:
        with self._storage.transaction() as session:
            rows = session.scalars(select(self._row_class)).all()
            records = [self._to_model(row) for row in rows]

        if predicate is not None:
            records = [r for r in records if predicate(r)]
        if key is not None:
            records.sort(key=key, reverse=reverse)
        elif reverse:
            records.reverse()
        return records


class SQLAuditStorage(AuditStorageInterface):
    """
    Audit log table.

    Uses its own short sessions so an audit write never joins (or
    commits) a ledger transaction.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _to_event(self, row: AuditEventRow) -> AuditEvent:
        return AuditEvent.model_validate(row, from_attributes=True)

    def _select(self, *criteria, newest_first: bool = False, limit: Optional[int] = None):
        order = AuditEventRow.timestamp.desc() if newest_first else AuditEventRow.timestamp
        stmt = select(AuditEventRow).where(*criteria).order_by(order)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self._session_factory() as session:
                return [self._to_event(row) for row in session.scalars(stmt).all()]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

    def append_event(self, event: AuditEvent) -> bool:
        try:
            with self._session_factory.begin() as session:
                session.add(AuditEventRow(**event.model_dump()))
            return True
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write audit event: {e}") from e

    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return self._select(AuditEventRow.correlation_id == correlation_id)

    def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        return self._select(
            AuditEventRow.entity_type == entity_type,
            AuditEventRow.entity_id == entity_id,
        )

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return self._select(newest_first=True, limit=limit)


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the ledger database.

    In-memory SQLite keeps a single shared connection so every
    session sees the same database.
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_engine(database_url, echo=echo)


class SQLStorage(StorageInterface):
    """
    Complete ledger store backed by a SQL database.

    Usage:
        storage = SQLStorage("sqlite:///taxledger.db")
        with storage.transaction():
            storage.payments.insert(payment)
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        echo: Optional[bool] = None,
        engine: Optional[Engine] = None,
    ):
        settings = get_settings().storage
        database_url = database_url or settings.database_url
        echo = settings.echo if echo is None else echo

        try:
            self._engine = engine or create_db_engine(database_url, echo=echo)
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise ConnectionError(f"Failed to open database {database_url}: {e}") from e

        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._session: Optional[Session] = None

        self.payments = SQLRecordStore(self, PaymentRow, PaymentRecord, "payment")
        self.summaries = SQLRecordStore(self, MonthlySummaryRow, MonthlySummary, "summary")
        self.exchange_rates = SQLRecordStore(self, ExchangeRateRow, ExchangeRateRecord, "exchange_rate")
        self.debts = SQLRecordStore(self, DebtRow, Debt, "debt")
        self.debt_payments = SQLRecordStore(self, DebtPaymentRow, DebtPayment, "debt_payment")
        self.maintenance = SQLRecordStore(self, MaintenanceRow, MaintenanceRecord, "maintenance")
        self.audit = SQLAuditStorage(self._session_factory)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        if self._session is not None:
            # Join the outer scope; it owns commit and rollback
            yield self._session
            return

        session = self._session_factory()
        self._session = session
        try:
            with session.begin():
                yield session
        except SQLAlchemyError as e:
            raise StorageError(f"Transaction failed: {e}") from e
        finally:
            self._session = None
            session.close()

    def close(self) -> None:
        self._engine.dispose()
