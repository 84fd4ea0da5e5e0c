"""
Ledger Aggregator

Keeps MonthlySummary records consistent with the set of PaymentRecords.

DESIGN DECISION: Cumulative totals are recomputed for the whole affected
year on every mutation instead of being patched incrementally. A year has
at most 12 summaries, so the full rewrite is cheap and cannot drift.
Summaries are a recompute-on-write cache; payments are the truth.

GUARANTEES:
- Every mutation (payment write + summary update + recompute) runs in one
  storage transaction; a failure leaves no partial state behind
- A summary exists exactly for the periods that have payments
- cumulative_income is the prefix sum of total_income within one year,
  in month order, starting from 0 every January
"""

from collections import defaultdict
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from taxledger.audit import AuditLogger
from taxledger.models.audit import AuditEvent, AuditEventBuilder
from taxledger.models.payment import MonthlySummary, PaymentRecord, utcnow
from taxledger.services.storage import StorageInterface


logger = structlog.get_logger(__name__)


class InconsistentSummaryError(Exception):
    """A summary expected to exist for a payment's period is missing."""

    def __init__(self, year: int, month: int, message: Optional[str] = None):
        self.year = year
        self.month = month
        super().__init__(message or f"No monthly summary for {year}-{month:02d}")


class LedgerAggregator:
    """
    Maintains per-month and per-year income totals.

    Usage:
        aggregator = LedgerAggregator(storage, audit_logger)
        aggregator.record_payment(payment)
        aggregator.delete_payment(payment)
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def find_summary(self, year: int, month: int) -> Optional[MonthlySummary]:
        return self._storage.summaries.first(
            lambda s: s.year == year and s.month == month
        )

    def require_summary(self, year: int, month: int) -> MonthlySummary:
        """
        The summary of a period that must have one.

        Raises:
            InconsistentSummaryError: If the period has no summary
        """
        summary = self.find_summary(year, month)
        if summary is None:
            raise InconsistentSummaryError(year, month)
        return summary

    def summaries_for_year(self, year: int) -> list[MonthlySummary]:
        """Summaries of one year in month order."""
        return self._storage.summaries.query(
            lambda s: s.year == year,
            key=lambda s: s.month,
        )

    def _previous_cumulative(self, year: int, month: int) -> Decimal:
        """
        Cumulative income of the closest earlier month of the same year.

        Months without payments contribute 0; January always starts at 0.
        """
        earlier = self._storage.summaries.query(
            lambda s: s.year == year and s.month < month,
            key=lambda s: s.month,
        )
        return earlier[-1].cumulative_income if earlier else Decimal("0")

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def record_payment(
        self,
        payment: PaymentRecord,
        correlation_id: Optional[UUID] = None,
    ) -> MonthlySummary:
        """
        Persist a payment and fold it into its monthly summary.

        Args:
            payment: A complete record, converted_amount already fixed

        Returns:
            The summary of the payment's period after the update

        Raises:
            StorageError: If the store fails; nothing is committed
        """
        with self._storage.transaction():
            events = self._apply_record(payment, correlation_id)
            self.recompute_cumulative_totals(payment.date.year)
            summary = self.require_summary(*payment.period)

        self._emit(events)
        return summary

    def delete_payment(
        self,
        payment: PaymentRecord,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[MonthlySummary]:
        """
        Remove a payment and take it out of its monthly summary.

        A summary left with no payments is deleted. A missing summary is
        logged and otherwise ignored.

        Returns:
            The period's summary after the update, None if it was removed
            or never existed

        Raises:
            StorageError: If the store fails; nothing is committed
        """
        with self._storage.transaction():
            events = self._apply_delete(payment, correlation_id)
            self.recompute_cumulative_totals(payment.date.year)
            summary = self.find_summary(*payment.period)

        self._emit(events)
        return summary

    def replace_payment(
        self,
        old: PaymentRecord,
        new: PaymentRecord,
        correlation_id: Optional[UUID] = None,
    ) -> MonthlySummary:
        """
        Edit a payment: remove `old` and record `new` as one unit.

        Both periods (and both years, if the date moved across a year)
        are brought up to date.
        """
        with self._storage.transaction():
            events = self._apply_delete(old, correlation_id)
            events += self._apply_record(new, correlation_id)
            for year in sorted({old.date.year, new.date.year}):
                self.recompute_cumulative_totals(year)
            summary = self.require_summary(*new.period)

        events.append(AuditEventBuilder.payment_replaced(
            old_payment_id=old.id,
            new_payment_id=new.id,
            correlation_id=correlation_id,
        ))
        self._emit(events)
        return summary

    def recompute_cumulative_totals(self, year: int) -> list[MonthlySummary]:
        """
        Rewrite cumulative_income for every summary of `year`.

        Walks the year's summaries in month order keeping a running
        total that starts at 0. Idempotent: a second call with no
        mutation in between changes nothing.

        Returns:
            The year's summaries in month order
        """
        with self._storage.transaction():
            summaries = self.summaries_for_year(year)
            running_total = Decimal("0")
            for summary in summaries:
                running_total += summary.total_income
                if summary.cumulative_income != running_total:
                    summary.cumulative_income = running_total
                    self._storage.summaries.update(summary)

        return summaries

    def rebuild_summaries(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> list[MonthlySummary]:
        """
        Regenerate every summary from the payment set.

        Repair tool for a store whose summaries no longer match its
        payments. Summary ids are not preserved.

        Returns:
            All summaries ordered by (year, month)
        """
        with self._storage.transaction():
            for summary in self._storage.summaries.query():
                self._storage.summaries.delete(summary.id)

            payments = self._storage.payments.query()
            totals: dict[tuple[int, int], Decimal] = defaultdict(Decimal)
            counts: dict[tuple[int, int], int] = defaultdict(int)
            for payment in payments:
                totals[payment.period] += payment.converted_amount
                counts[payment.period] += 1

            for (year, month) in sorted(totals):
                self._storage.summaries.insert(MonthlySummary(
                    year=year,
                    month=month,
                    total_income=totals[(year, month)],
                    payment_count=counts[(year, month)],
                ))

            for year in sorted({year for year, _ in totals}):
                self.recompute_cumulative_totals(year)

            summaries = self._storage.summaries.query(key=lambda s: s.period)

        logger.info(
            "summaries_rebuilt",
            summary_count=len(summaries),
            payment_count=len(payments),
        )
        self._emit([AuditEventBuilder.summaries_rebuilt(
            summary_count=len(summaries),
            payment_count=len(payments),
            correlation_id=correlation_id,
        )])
        return summaries

    # -------------------------------------------------------------------------
    # Internals (must run inside a transaction)
    # -------------------------------------------------------------------------

    def _apply_record(
        self,
        payment: PaymentRecord,
        correlation_id: Optional[UUID],
    ) -> list[AuditEvent]:
        events = []
        self._storage.payments.insert(payment)

        year, month = payment.period
        summary = self.find_summary(year, month)
        if summary is not None:
            summary.total_income += payment.converted_amount
            summary.payment_count += 1
            summary.last_updated = utcnow()
            self._storage.summaries.update(summary)
        else:
            summary = MonthlySummary(
                year=year,
                month=month,
                total_income=payment.converted_amount,
                cumulative_income=self._previous_cumulative(year, month) + payment.converted_amount,
                payment_count=1,
            )
            self._storage.summaries.insert(summary)
            events.append(AuditEventBuilder.summary_created(
                summary_id=summary.id,
                year=year,
                month=month,
                correlation_id=correlation_id,
            ))

        events.append(AuditEventBuilder.payment_recorded(
            payment_id=payment.id,
            company=payment.company,
            converted_amount=str(payment.converted_amount),
            correlation_id=correlation_id,
        ))
        return events

    def _apply_delete(
        self,
        payment: PaymentRecord,
        correlation_id: Optional[UUID],
    ) -> list[AuditEvent]:
        events = []

        # Subtract what was stored, not what the caller holds
        stored = self._storage.payments.get(payment.id)
        if stored is None:
            logger.warning("payment_not_found", payment_id=str(payment.id))
            return events
        self._storage.payments.delete(stored.id)
        events.append(AuditEventBuilder.payment_deleted(
            payment_id=stored.id,
            company=stored.company,
            converted_amount=str(stored.converted_amount),
            correlation_id=correlation_id,
        ))

        year, month = stored.period
        try:
            summary = self.require_summary(year, month)
        except InconsistentSummaryError as e:
            logger.warning(
                "summary_missing",
                payment_id=str(stored.id),
                year=e.year,
                month=e.month,
            )
            events.append(AuditEventBuilder.summary_missing(
                payment_id=stored.id,
                year=year,
                month=month,
                correlation_id=correlation_id,
            ))
            return events

        remaining = summary.payment_count - 1
        if remaining <= 0:
            self._storage.summaries.delete(summary.id)
            events.append(AuditEventBuilder.summary_removed(
                summary_id=summary.id,
                year=year,
                month=month,
                correlation_id=correlation_id,
            ))
        else:
            summary.total_income -= stored.converted_amount
            summary.payment_count = remaining
            summary.last_updated = utcnow()
            self._storage.summaries.update(summary)

        return events

    def _emit(self, events: list[AuditEvent]) -> None:
        if self._audit_logger:
            self._audit_logger.log_all(events)
