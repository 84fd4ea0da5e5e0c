"""
Debt Book

Personal debts and loans in both directions, with their repayments.

GUARANTEES:
- remaining_amount only goes down, and never below 0
- status follows remaining_amount: Paid at 0, Partially Paid otherwise
- A debt and its repayments are deleted together
"""

import datetime as dt
from collections import defaultdict
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from taxledger.audit import AuditLogger
from taxledger.models.audit import AuditEventBuilder
from taxledger.models.debt import (
    Debt,
    DebtCurrency,
    DebtFilter,
    DebtPayment,
    DebtStatus,
    DebtType,
)
from taxledger.models.payment import utcnow
from taxledger.services.storage import NotFoundError, StorageInterface


logger = structlog.get_logger(__name__)


class DebtPaymentError(Exception):
    """A repayment amount is not acceptable for the debt."""

    def __init__(self, debt_id: UUID, amount: Decimal, message: str):
        self.debt_id = debt_id
        self.amount = amount
        super().__init__(message)


class DebtBook:
    """
    Debt and repayment bookkeeping.

    Usage:
        book = DebtBook(storage, audit_logger)
        debt = book.add_debt(Debt(person_name="Nino", original_amount=Decimal("500"),
                                  currency=DebtCurrency.GEL, type=DebtType.I_OWE))
        book.record_repayment(debt.id, Decimal("200"))
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    def get(self, debt_id: UUID) -> Debt:
        debt = self._storage.debts.get(debt_id)
        if debt is None:
            raise NotFoundError(f"debt record not found: {debt_id}")
        return debt

    def add_debt(self, debt: Debt, correlation_id: Optional[UUID] = None) -> Debt:
        with self._storage.transaction():
            self._storage.debts.insert(debt)

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.debt_created(
                debt_id=debt.id,
                person_name=debt.person_name,
                amount=f"{debt.original_amount} {debt.currency.value}",
                correlation_id=correlation_id,
            ))
        return debt

    def record_repayment(
        self,
        debt_id: UUID,
        amount: Decimal,
        payment_date: Optional[dt.date] = None,
        notes: str = "",
        correlation_id: Optional[UUID] = None,
    ) -> Debt:
        """
        Pay down a debt.

        Args:
            amount: Must be > 0 and not more than what is still outstanding

        Returns:
            The debt after the repayment

        Raises:
            DebtPaymentError: If the amount is out of range
            NotFoundError: If the debt doesn't exist
        """
        with self._storage.transaction():
            debt = self.get(debt_id)

            if amount <= 0:
                raise DebtPaymentError(debt_id, amount, "Repayment amount must be positive")
            if amount > debt.remaining_amount:
                raise DebtPaymentError(
                    debt_id,
                    amount,
                    f"Repayment {amount} exceeds remaining {debt.remaining_amount}",
                )

            self._storage.debt_payments.insert(DebtPayment(
                debt_id=debt_id,
                amount=amount,
                date=payment_date or dt.date.today(),
                notes=notes,
            ))

            debt.remaining_amount = debt.remaining_amount - amount
            if debt.remaining_amount <= 0:
                debt.status = DebtStatus.PAID
            else:
                debt.status = DebtStatus.PARTIALLY_PAID
            debt.last_updated = utcnow()
            self._storage.debts.update(debt)

        logger.info(
            "debt_repaid",
            debt_id=str(debt_id),
            amount=str(amount),
            status=debt.status.value,
        )
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.debt_payment_recorded(
                debt_id=debt_id,
                amount=str(amount),
                remaining=str(debt.remaining_amount),
                correlation_id=correlation_id,
            ))
        return debt

    def delete_debt(self, debt_id: UUID, correlation_id: Optional[UUID] = None) -> bool:
        """Delete a debt with all of its repayments."""
        with self._storage.transaction():
            payments = self.payments_for(debt_id)
            for payment in payments:
                self._storage.debt_payments.delete(payment.id)
            deleted = self._storage.debts.delete(debt_id)

        if deleted and self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.debt_deleted(
                debt_id=debt_id,
                payment_count=len(payments),
                correlation_id=correlation_id,
            ))
        return deleted

    def payments_for(self, debt_id: UUID) -> list[DebtPayment]:
        """Repayments of a debt, newest first."""
        return self._storage.debt_payments.query(
            lambda p: p.debt_id == debt_id,
            key=lambda p: p.date,
            reverse=True,
        )

    def filter_debts(
        self,
        debt_filter: DebtFilter = DebtFilter.ALL,
        search: Optional[str] = None,
    ) -> list[Debt]:
        """
        Debts matching a list filter and a name search, newest first.

        The search is a case-insensitive substring match on person_name;
        an empty search matches everything.
        """
        def matches(debt: Debt) -> bool:
            if debt_filter == DebtFilter.I_OWE and debt.type != DebtType.I_OWE:
                return False
            if debt_filter == DebtFilter.OWES_ME and debt.type != DebtType.OWES_ME:
                return False
            if debt_filter == DebtFilter.ACTIVE and debt.status == DebtStatus.PAID:
                return False
            if debt_filter == DebtFilter.PAID and debt.status != DebtStatus.PAID:
                return False
            if search and search.casefold() not in debt.person_name.casefold():
                return False
            return True

        return self._storage.debts.query(matches, key=lambda d: d.created_date, reverse=True)

    def outstanding_totals(self, debt_type: DebtType) -> dict[DebtCurrency, Decimal]:
        """Remaining amounts of unpaid debts in one direction, per currency."""
        totals: dict[DebtCurrency, Decimal] = defaultdict(Decimal)
        for debt in self._storage.debts.query(
            lambda d: d.type == debt_type and d.status != DebtStatus.PAID
        ):
            totals[debt.currency] += debt.remaining_amount
        return dict(sorted(totals.items(), key=lambda item: item[0].value))

    def past_due(self, today: Optional[dt.date] = None) -> list[Debt]:
        return [d for d in self.filter_debts(DebtFilter.ACTIVE) if d.is_past_due(today)]
