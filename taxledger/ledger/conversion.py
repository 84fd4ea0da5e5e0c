"""
Currency Conversion

The one rule that turns a foreign-currency payment into home currency:

    converted = amount                            if currency is home
    converted = ceiling(amount * exchange_rate)   otherwise

The ceiling is applied once per payment, when the record is built, and
the result is frozen on the record. Totals are sums of already-ceilinged
values, so sum(converted) can exceed ceiling(sum(amount * rate)). That
is the intended bookkeeping behaviour.
"""

from datetime import date
from decimal import ROUND_CEILING, Decimal
from typing import Optional
from uuid import UUID

from taxledger.models.payment import Currency, PaymentRecord


def convert_to_home(
    amount: Decimal,
    currency: Currency,
    exchange_rate: Decimal,
    home_currency: Currency = Currency.GEL,
) -> Decimal:
    """Converted amount of a payment, in home currency."""
    if currency == home_currency:
        return amount
    return (amount * exchange_rate).to_integral_value(rounding=ROUND_CEILING)


def build_payment(
    company: str,
    amount: Decimal,
    currency: Currency,
    payment_date: date,
    exchange_rate: Decimal,
    home_currency: Currency = Currency.GEL,
    payment_id: Optional[UUID] = None,
) -> PaymentRecord:
    """
    Build a PaymentRecord with its converted amount fixed.

    The home currency always carries a rate of exactly 1, whatever
    rate was passed in.
    """
    if currency == home_currency:
        exchange_rate = Decimal("1")

    fields = {}
    if payment_id is not None:
        fields["id"] = payment_id

    return PaymentRecord(
        company=company,
        amount=amount,
        currency=currency,
        date=payment_date,
        exchange_rate=exchange_rate,
        converted_amount=convert_to_home(amount, currency, exchange_rate, home_currency),
        **fields,
    )
