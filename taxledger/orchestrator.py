"""
Main Orchestrator for taxledger

This module ties together all the components and defines the
end-to-end flows for:
1. Payment entry (rate lookup → validate → convert → record)
2. Payment edit and delete
3. Exchange rate history (fetch latest → store → browse)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The rate provider is called before the ledger is touched, never inside
  a storage transaction
- Invalid input never reaches the aggregator
- Every step is audited

A UI calls these flows; it never talks to storage directly.
"""

import datetime as dt
from collections import defaultdict
from decimal import Decimal
from typing import Callable, NamedTuple, Optional, TypeVar, Union
from uuid import UUID

import structlog

from taxledger.audit import AuditLogger, create_correlation_id
from taxledger.config import LedgerSettings, get_settings
from taxledger.ledger import DebtBook, LedgerAggregator, MaintenanceLog, build_payment
from taxledger.models.audit import AuditEventBuilder
from taxledger.models.payment import (
    Currency,
    ExchangeRateRecord,
    PaymentRecord,
    ValidationResult,
)
from taxledger.queries import LedgerQueries
from taxledger.services.rates import (
    NBGRateProvider,
    RateProviderInterface,
    RateUnavailableError,
)
from taxledger.services.storage import (
    ConnectionError,
    InMemoryStorage,
    NotFoundError,
    SQLStorage,
    StorageError,
    StorageInterface,
)
from taxledger.validation import PaymentInputValidator


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class PaymentValidationError(Exception):
    """Payment input has validation errors and cannot be recorded."""

    def __init__(self, result: ValidationResult, message: Optional[str] = None):
        self.result = result
        super().__init__(message or f"Payment input has {result.error_count} errors")


class PaymentEntryFlow:
    """
    Orchestrates entering, editing and deleting income payments.

    Flow:
    1. Rate → home currency is 1, anything else comes from the provider
    2. Validate → two-stage validation of the raw input
    3. Convert → build the PaymentRecord with its converted amount frozen
    4. Record → aggregator writes payment and summaries in one transaction
    """

    def __init__(
        self,
        storage: StorageInterface,
        rate_provider: RateProviderInterface,
        aggregator: Optional[LedgerAggregator] = None,
        validator: Optional[PaymentInputValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._rate_provider = rate_provider
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().ledger
        self._aggregator = aggregator or LedgerAggregator(storage, audit_logger)
        self._validator = validator or PaymentInputValidator(storage, self._settings)

    def lookup_rate(
        self,
        currency: Currency,
        on_date: dt.date,
        correlation_id: Optional[UUID] = None,
    ) -> Decimal:
        """
        Rate of `currency` to the home currency on `on_date`.

        The home currency is always 1 and never hits the network.
        A fetched rate is kept in the rate history.

        Raises:
            RateUnavailableError: The provider could not supply a rate
        """
        if currency == self._settings.home_currency:
            return Decimal("1")

        correlation_id = correlation_id or create_correlation_id()

        try:
            rate = self._rate_provider.fetch_rate(currency, on_date)
        except RateUnavailableError as e:
            if self._audit_logger:
                self._audit_logger.log(AuditEventBuilder.rate_fetch_failed(
                    currency=currency.value,
                    rate_date=on_date.isoformat(),
                    error_message=str(e),
                    correlation_id=correlation_id,
                ))
            raise

        _store_rates(self._storage, {currency: rate}, on_date)

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.rate_fetched(
                currency=currency.value,
                rate=str(rate),
                rate_date=on_date.isoformat(),
                correlation_id=correlation_id,
            ))
        return rate

    def validate(
        self,
        company: Optional[str],
        amount,
        currency: Union[Currency, str],
        payment_date: dt.date,
        exchange_rate,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ValidationResult, str]:
        """
        Validate raw payment input.

        Returns:
            (validation_result, user_message)
        """
        result = self._validator.validate(company, amount, currency, payment_date, exchange_rate)
        message = self._validator.get_user_friendly_summary(result)

        if self._audit_logger and not result.is_valid:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
            ]
            self._audit_logger.log(AuditEventBuilder.validation_failed(
                issues=issues,
                correlation_id=correlation_id,
            ))

        return result, message

    def submit(
        self,
        company: str,
        amount,
        currency: Union[Currency, str],
        payment_date: dt.date,
        exchange_rate,
        correlation_id: Optional[UUID] = None,
    ) -> PaymentRecord:
        """
        Validate, convert and record a new payment.

        Raises:
            PaymentValidationError: Input has errors; nothing was stored
            StorageError: The write failed; nothing was stored
        """
        correlation_id = correlation_id or create_correlation_id()
        payment = self._build(
            company, amount, currency, payment_date, exchange_rate, correlation_id
        )

        self._guard_storage(
            "record_payment",
            lambda: self._aggregator.record_payment(payment, correlation_id),
            correlation_id,
        )
        return payment

    def edit(
        self,
        payment_id: UUID,
        company: str,
        amount,
        currency: Union[Currency, str],
        payment_date: dt.date,
        exchange_rate,
        correlation_id: Optional[UUID] = None,
    ) -> PaymentRecord:
        """
        Replace a recorded payment with edited values.

        The payment keeps its id. Old and new periods are both updated
        in the same transaction.

        Raises:
            NotFoundError: No payment with this id
            PaymentValidationError: Input has errors; nothing was changed
        """
        correlation_id = correlation_id or create_correlation_id()

        old = self._storage.payments.get(payment_id)
        if old is None:
            raise NotFoundError(f"payment record not found: {payment_id}")

        new = self._build(
            company, amount, currency, payment_date, exchange_rate, correlation_id,
            payment_id=old.id,
        )
        self._guard_storage(
            "replace_payment",
            lambda: self._aggregator.replace_payment(old, new, correlation_id),
            correlation_id,
        )
        return new

    def delete(self, payment_id: UUID, correlation_id: Optional[UUID] = None) -> bool:
        """
        Delete a recorded payment.

        Returns:
            False if no payment has this id
        """
        correlation_id = correlation_id or create_correlation_id()

        payment = self._storage.payments.get(payment_id)
        if payment is None:
            return False

        self._guard_storage(
            "delete_payment",
            lambda: self._aggregator.delete_payment(payment, correlation_id),
            correlation_id,
        )
        return True

    def _build(
        self,
        company,
        amount,
        currency,
        payment_date,
        exchange_rate,
        correlation_id,
        payment_id: Optional[UUID] = None,
    ) -> PaymentRecord:
        result, message = self.validate(
            company, amount, currency, payment_date, exchange_rate, correlation_id
        )
        if not result.is_valid:
            raise PaymentValidationError(result, message)

        return build_payment(
            company=company,
            amount=result.amount,
            currency=Currency(currency),
            payment_date=payment_date,
            exchange_rate=result.exchange_rate,
            home_currency=self._settings.home_currency,
            payment_id=payment_id,
        )

    def _guard_storage(self, operation: str, action: Callable[[], T], correlation_id: UUID) -> T:
        try:
            return action()
        except StorageError as e:
            logger.error("ledger_write_failed", operation=operation, error=str(e))
            if self._audit_logger:
                self._audit_logger.log_storage_error(
                    operation=operation,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise


class RateHistoryFlow:
    """
    Orchestrates the exchange rate history view.

    Latest rates are fetched on demand and stored; the history is
    browsed newest first.
    """

    def __init__(
        self,
        storage: StorageInterface,
        rate_provider: RateProviderInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._rate_provider = rate_provider
        self._audit_logger = audit_logger

    def refresh_latest(
        self,
        on_date: Optional[dt.date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[ExchangeRateRecord]:
        """
        Fetch and store the latest rates of every foreign currency.

        Raises:
            RateUnavailableError: The provider could not supply rates
        """
        correlation_id = correlation_id or create_correlation_id()
        on_date = on_date or dt.date.today()

        try:
            rates = self._rate_provider.fetch_latest_rates()
        except RateUnavailableError as e:
            if self._audit_logger:
                self._audit_logger.log_external_service_error(
                    service="nbg",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        foreign = {
            currency: rate
            for currency, rate in rates.items()
            if currency != self._rate_provider.home_currency
        }
        records = _store_rates(self._storage, foreign, on_date)

        if self._audit_logger:
            self._audit_logger.log_all([
                AuditEventBuilder.rate_fetched(
                    currency=record.currency.value,
                    rate=str(record.rate),
                    rate_date=record.date.isoformat(),
                    correlation_id=correlation_id,
                )
                for record in records
            ])
        return records

    def history(
        self,
        currency: Optional[Currency] = None,
    ) -> list[tuple[dt.date, list[ExchangeRateRecord]]]:
        """Stored rates grouped by the date they are valid for, newest first."""
        records = self._storage.exchange_rates.query(
            (lambda r: r.currency == currency) if currency else None,
            key=lambda r: (r.date, r.fetched_at),
            reverse=True,
        )

        by_date: dict[dt.date, list[ExchangeRateRecord]] = defaultdict(list)
        for record in records:
            by_date[record.date].append(record)
        return sorted(by_date.items(), key=lambda item: item[0], reverse=True)

    def latest(self, currency: Currency) -> Optional[ExchangeRateRecord]:
        """Most recently valid stored rate of a currency."""
        records = self._storage.exchange_rates.query(
            lambda r: r.currency == currency,
            key=lambda r: (r.date, r.fetched_at),
            reverse=True,
        )
        return records[0] if records else None


def _store_rates(
    storage: StorageInterface,
    rates: dict[Currency, Decimal],
    on_date: dt.date,
) -> list[ExchangeRateRecord]:
    records = [
        ExchangeRateRecord(currency=currency, rate=rate, date=on_date)
        for currency, rate in rates.items()
    ]
    with storage.transaction():
        for record in records:
            storage.exchange_rates.insert(record)
    return records


class AppComponents(NamedTuple):
    """Everything a UI needs, wired to one storage backend."""
    payments: PaymentEntryFlow
    rates: RateHistoryFlow
    queries: LedgerQueries
    debts: DebtBook
    maintenance: MaintenanceLog
    storage: StorageInterface


def create_storage(backend: Optional[str] = None) -> StorageInterface:
    """
    Open the configured storage backend.

    Args:
        backend: 'sql' or 'memory'; taken from settings if None
    """
    backend = backend or get_settings().storage.backend
    if backend == "memory":
        return InMemoryStorage()
    return SQLStorage()


def create_app_components(
    storage: Optional[StorageInterface] = None,
    rate_provider: Optional[RateProviderInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        storage: Storage backend; opened from settings if None.
                 Falls back to in-memory storage if the database
                 cannot be opened.
        rate_provider: Defaults to the NBG provider.
    """
    settings = get_settings()
    storage_error = None

    if storage is None:
        try:
            storage = create_storage()
        except ConnectionError as e:
            # Storage not available - continue without persistence
            storage_error = e
            storage = InMemoryStorage()

    audit_logger = AuditLogger(storage.audit)
    if storage_error is not None:
        audit_logger.log_error(
            error_type="storage_unavailable",
            error_message=str(storage_error),
            details={"fallback": "memory"},
        )
    rate_provider = rate_provider or NBGRateProvider(settings.exchange_rates)

    return AppComponents(
        payments=PaymentEntryFlow(
            storage,
            rate_provider,
            audit_logger=audit_logger,
            settings=settings.ledger,
        ),
        rates=RateHistoryFlow(storage, rate_provider, audit_logger),
        queries=LedgerQueries(storage, settings.ledger),
        debts=DebtBook(storage, audit_logger),
        maintenance=MaintenanceLog(storage, audit_logger, settings.maintenance),
        storage=storage,
    )
