"""
Core Income Models for taxledger

These models define the strict schemas for income payments and the
monthly summaries derived from them. They are designed to:
1. Enforce positive amounts and rates at runtime
2. Keep the converted (home currency) amount frozen once computed
3. Be serializable for storage and logging

DESIGN DECISION: PaymentRecord is immutable. Its converted amount is
computed once, at entry time, from the rate valid on the payment date.
A later change of that rate must never alter recorded income.
"""

import calendar
import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


COMPANY_MAX_LENGTH = 200

# Original amounts are entered in whole cents
AMOUNT_DECIMAL_PLACES = 2


def utcnow() -> dt.datetime:
    """Timezone-aware current UTC time."""
    return dt.datetime.now(dt.timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class Currency(str, Enum):
    """
    Currencies an income payment can be received in.

    DESIGN DECISION: A closed set. The rate provider and the summaries
    only ever deal with these three.
    """
    EUR = "EUR"
    USD = "USD"
    GEL = "GEL"

    @property
    def symbol(self) -> str:
        return _CURRENCY_SYMBOLS[self]


_CURRENCY_SYMBOLS = {
    Currency.EUR: "€",
    Currency.USD: "$",
    Currency.GEL: "₾",
}


# =============================================================================
# PAYMENTS
# =============================================================================

class PaymentRecord(BaseModel):
    """
    A single income payment.

    CRITICAL: converted_amount is stored, not recomputed. Build new
    records through taxledger.ledger.conversion.build_payment so the
    conversion rule is applied exactly once.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique payment ID"
    )
    company: str = Field(
        ...,
        min_length=1,
        max_length=COMPANY_MAX_LENGTH,
        description="Paying company (display name)"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount in the original currency"
    )
    currency: Currency
    date: dt.date = Field(
        ...,
        description="Date the payment was received"
    )
    exchange_rate: Decimal = Field(
        ...,
        gt=0,
        description="Rate to home currency valid at the payment date"
    )
    converted_amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount in home currency, frozen at creation"
    )
    created_at: dt.datetime = Field(
        default_factory=utcnow,
        description="When the payment was entered"
    )

    @property
    def period(self) -> tuple[int, int]:
        """(year, month) of the payment."""
        return self.date.year, self.date.month


class MonthlySummary(BaseModel):
    """
    Income totals for one (year, month).

    Exists only while at least one payment falls into the period.
    cumulative_income is the running total within the year and is
    rewritten by the aggregator on every mutation.
    """
    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(default_factory=uuid4)
    year: int = Field(..., ge=1)
    month: int = Field(..., ge=1, le=12)
    total_income: Decimal = Field(
        default=Decimal("0"),
        description="Sum of converted amounts in the period"
    )
    cumulative_income: Decimal = Field(
        default=Decimal("0"),
        description="Year-to-date income up to and including this month"
    )
    payment_count: int = Field(default=0, ge=0)
    last_updated: dt.datetime = Field(default_factory=utcnow)

    @property
    def period(self) -> tuple[int, int]:
        return self.year, self.month

    @property
    def month_name(self) -> str:
        return calendar.month_name[self.month]

    def tax_for(self, tax_rate: Decimal) -> Decimal:
        """Tax on this month's income at the given rate."""
        return self.total_income * tax_rate

    def cumulative_tax_for(self, tax_rate: Decimal) -> Decimal:
        return self.cumulative_income * tax_rate


# =============================================================================
# EXCHANGE RATE HISTORY
# =============================================================================

class ExchangeRateRecord(BaseModel):
    """A fetched exchange rate kept for the rate history view."""
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    currency: Currency
    rate: Decimal = Field(..., gt=0)
    date: dt.date = Field(
        ...,
        description="Date the rate is valid for"
    )
    fetched_at: dt.datetime = Field(default_factory=utcnow)


# =============================================================================
# DERIVED VIEWS
# =============================================================================

class QuickStats(BaseModel):
    """
    Pure aggregation over a set of payments.

    Never persisted. Always equal to a direct recomputation.
    """

    payment_count: int = Field(ge=0)
    total_converted: Decimal
    unique_companies: int = Field(ge=0)
    totals_by_currency: dict[Currency, Decimal] = Field(default_factory=dict)


class PaymentGroup(BaseModel):
    """Payments of one calendar month for the history view."""

    year: int
    month: int
    label: str = Field(..., description="Display label, e.g. 'March 2025'")
    payments: list[PaymentRecord] = Field(default_factory=list)
    total_converted: Decimal = Decimal("0")


class MonthTax(BaseModel):
    """One month of a yearly overview."""

    year: int
    month: int
    month_name: str
    total_income: Decimal
    cumulative_income: Decimal
    payment_count: int
    tax_amount: Decimal
    cumulative_tax_amount: Decimal


class YearlyOverview(BaseModel):
    """Monthly breakdown and totals for one year."""

    year: int
    months: list[MonthTax] = Field(default_factory=list)
    total_income: Decimal = Decimal("0")
    total_tax: Decimal = Decimal("0")

    @property
    def has_data(self) -> bool:
        return bool(self.months)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found in user input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """Result of validating raw payment input."""

    validated_at: dt.datetime = Field(default_factory=utcnow)
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    # Parsed values, present only when the input is valid
    amount: Optional[Decimal] = None
    exchange_rate: Optional[Decimal] = None

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")
