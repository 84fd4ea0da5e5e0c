"""
Ledger Queries

DESIGN DECISION: Queries are read-only and DETERMINISTIC.
Every number returned here is computed from what is in storage at the
time of the call. Nothing is cached and nothing is estimated.

Income totals by month come from the MonthlySummary records; payment
lists and quick statistics come straight from the PaymentRecords.
"""

import calendar
from collections import defaultdict
from decimal import Decimal
from typing import Optional

from taxledger.config import LedgerSettings, get_settings
from taxledger.models.payment import (
    Currency,
    MonthlySummary,
    MonthTax,
    PaymentGroup,
    PaymentRecord,
    QuickStats,
    YearlyOverview,
)
from taxledger.services.storage import StorageInterface


class LedgerQueries:
    """
    Read side of the income ledger.

    GUARANTEES:
    - Only returns real data from storage
    - Empty results are empty lists or zero totals, never None
    """

    def __init__(
        self,
        storage: StorageInterface,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().ledger

    # -------------------------------------------------------------------------
    # Payment history
    # -------------------------------------------------------------------------

    def payment_history(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
        search: Optional[str] = None,
    ) -> list[PaymentRecord]:
        """
        Payments matching the filters, newest first.

        Args:
            year: Keep payments of this year only
            month: Keep payments of this month (of any year unless year is set)
            search: Case-insensitive substring of the company name
        """
        needle = search.strip().casefold() if search else ""

        def matches(payment: PaymentRecord) -> bool:
            if year is not None and payment.date.year != year:
                return False
            if month is not None and payment.date.month != month:
                return False
            if needle and needle not in payment.company.casefold():
                return False
            return True

        return self._storage.payments.query(
            matches,
            key=lambda p: (p.date, p.created_at),
            reverse=True,
        )

    def group_by_month(self, payments: list[PaymentRecord]) -> list[PaymentGroup]:
        """Group payments by calendar month, newest month first."""
        buckets: dict[tuple[int, int], list[PaymentRecord]] = defaultdict(list)
        for payment in payments:
            buckets[payment.period].append(payment)

        groups = []
        for (year, month) in sorted(buckets, reverse=True):
            members = sorted(buckets[(year, month)], key=lambda p: p.date, reverse=True)
            groups.append(PaymentGroup(
                year=year,
                month=month,
                label=f"{calendar.month_name[month]} {year}",
                payments=members,
                total_converted=sum((p.converted_amount for p in members), Decimal("0")),
            ))
        return groups

    def available_years(self) -> list[int]:
        """Years that have at least one payment, newest first."""
        return sorted({p.date.year for p in self._storage.payments.query()}, reverse=True)

    def quick_stats(self, year: Optional[int] = None) -> QuickStats:
        """
        Count, converted total and distinct companies of the payments.

        A pure aggregation: always equal to recomputing from the payment set.
        """
        payments = self.payment_history(year=year)

        by_currency: dict[Currency, Decimal] = defaultdict(Decimal)
        for payment in payments:
            by_currency[payment.currency] += payment.amount

        return QuickStats(
            payment_count=len(payments),
            total_converted=sum((p.converted_amount for p in payments), Decimal("0")),
            unique_companies=len({p.company for p in payments}),
            totals_by_currency=dict(by_currency),
        )

    # -------------------------------------------------------------------------
    # Monthly summaries and tax
    # -------------------------------------------------------------------------

    def month_summary(self, year: int, month: int) -> Optional[MonthlySummary]:
        return self._storage.summaries.first(
            lambda s: s.year == year and s.month == month
        )

    def tax_for(self, summary: MonthlySummary) -> Decimal:
        return summary.tax_for(self._settings.tax_rate)

    def cumulative_tax_for(self, summary: MonthlySummary) -> Decimal:
        return summary.cumulative_tax_for(self._settings.tax_rate)

    def yearly_overview(self, year: int) -> YearlyOverview:
        """Monthly income and tax of one year, in month order."""
        summaries = self._storage.summaries.query(
            lambda s: s.year == year,
            key=lambda s: s.month,
        )

        months = [
            MonthTax(
                year=s.year,
                month=s.month,
                month_name=s.month_name,
                total_income=s.total_income,
                cumulative_income=s.cumulative_income,
                payment_count=s.payment_count,
                tax_amount=self.tax_for(s),
                cumulative_tax_amount=self.cumulative_tax_for(s),
            )
            for s in summaries
        ]

        return YearlyOverview(
            year=year,
            months=months,
            total_income=sum((m.total_income for m in months), Decimal("0")),
            total_tax=sum((m.tax_amount for m in months), Decimal("0")),
        )
