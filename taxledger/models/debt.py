"""
Debt and Loan Models

Personal debts in both directions: money I owe and money owed to me.
A debt is repaid through DebtPayment records; remaining_amount and
status are kept in step with those payments by the DebtBook service.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from taxledger.models.payment import utcnow


class DebtCurrency(str, Enum):
    """Currencies a debt can be denominated in."""
    EUR = "EUR"
    USD = "USD"
    GEL = "GEL"
    BYN = "BYN"

    @property
    def symbol(self) -> str:
        return _DEBT_SYMBOLS[self]


_DEBT_SYMBOLS = {
    DebtCurrency.EUR: "€",
    DebtCurrency.USD: "$",
    DebtCurrency.GEL: "₾",
    DebtCurrency.BYN: "Br",
}


class DebtType(str, Enum):
    """Direction of the debt."""
    I_OWE = "I Owe"
    OWES_ME = "Owes Me"


class DebtStatus(str, Enum):
    """Repayment status."""
    PENDING = "Pending"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"


class DebtFilter(str, Enum):
    """Filters offered on the debt list."""
    ALL = "All"
    I_OWE = "I Owe"
    OWES_ME = "Owes Me"
    ACTIVE = "Active"
    PAID = "Paid"


class Debt(BaseModel):
    """
    A debt or loan.

    remaining_amount starts equal to original_amount and only goes down
    through repayments.
    """
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    id: UUID = Field(default_factory=uuid4)
    person_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Who the debt is with"
    )
    original_amount: Decimal = Field(..., gt=0)
    remaining_amount: Decimal = Field(
        ...,
        ge=0,
        description="Still outstanding; defaults to original_amount"
    )
    currency: DebtCurrency
    type: DebtType
    status: DebtStatus = DebtStatus.PENDING
    created_date: dt.date = Field(default_factory=dt.date.today)
    due_date: Optional[dt.date] = None
    notes: str = Field(default="", max_length=1000)
    last_updated: dt.datetime = Field(default_factory=utcnow)

    @model_validator(mode='before')
    @classmethod
    def default_remaining(cls, data):
        """A new debt has nothing repaid yet."""
        if isinstance(data, dict) and data.get("remaining_amount") is None:
            data = {**data, "remaining_amount": data.get("original_amount")}
        return data

    @property
    def paid_amount(self) -> Decimal:
        return self.original_amount - self.remaining_amount

    @property
    def payment_progress(self) -> Decimal:
        """Fraction repaid, 0..1."""
        if self.original_amount <= 0:
            return Decimal("0")
        return self.paid_amount / self.original_amount

    def is_past_due(self, today: Optional[dt.date] = None) -> bool:
        if self.due_date is None:
            return False
        today = today or dt.date.today()
        return self.due_date < today and self.status != DebtStatus.PAID


class DebtPayment(BaseModel):
    """A single repayment against a debt."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(default_factory=uuid4)
    debt_id: UUID
    amount: Decimal = Field(..., gt=0)
    date: dt.date = Field(default_factory=dt.date.today)
    notes: str = Field(default="", max_length=1000)
