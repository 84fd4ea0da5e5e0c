"""Tests for the home currency conversion rule."""

from datetime import date
from decimal import Decimal

from taxledger.ledger import build_payment, convert_to_home
from taxledger.models.payment import Currency


class TestConvertToHome:
    """Tests for convert_to_home."""

    def test_home_currency_is_identity(self):
        """Test GEL amounts pass through unchanged, cents included."""
        assert convert_to_home(Decimal("451.25"), Currency.GEL, Decimal("1")) == Decimal("451.25")

    def test_foreign_currency_rounds_up(self):
        """Test the product is rounded up to a whole unit."""
        assert convert_to_home(Decimal("100"), Currency.EUR, Decimal("2.9512")) == Decimal("296")

    def test_exact_product_is_not_bumped(self):
        """Test an integral product stays as is."""
        assert convert_to_home(Decimal("100"), Currency.USD, Decimal("2.7")) == Decimal("270")

    def test_tiny_fraction_still_rounds_up(self):
        """Test ceiling, not rounding to nearest."""
        assert convert_to_home(Decimal("1"), Currency.USD, Decimal("2.0001")) == Decimal("3")

    def test_sum_of_ceilings_can_exceed_ceiling_of_sum(self):
        """Test each payment is rounded on its own."""
        rate = Decimal("2.5")
        first = convert_to_home(Decimal("1"), Currency.EUR, rate)
        second = convert_to_home(Decimal("1"), Currency.EUR, rate)
        assert first + second == Decimal("6")
        assert convert_to_home(Decimal("2"), Currency.EUR, rate) == Decimal("5")


class TestBuildPayment:
    """Tests for build_payment."""

    def test_home_currency_forces_rate_one(self):
        """Test a GEL payment ignores the supplied rate."""
        payment = build_payment(
            company="Acme LLC",
            amount=Decimal("200"),
            currency=Currency.GEL,
            payment_date=date(2025, 1, 5),
            exchange_rate=Decimal("3.1"),
        )
        assert payment.exchange_rate == Decimal("1")
        assert payment.converted_amount == Decimal("200")

    def test_foreign_payment_is_converted_once(self):
        """Test the converted amount is fixed on the record."""
        payment = build_payment(
            company="Globex",
            amount=Decimal("1000"),
            currency=Currency.EUR,
            payment_date=date(2025, 2, 1),
            exchange_rate=Decimal("2.95123"),
        )
        assert payment.converted_amount == Decimal("2952")
        assert payment.exchange_rate == Decimal("2.95123")

    def test_explicit_id_is_kept(self, make_payment):
        """Test an existing id can be carried over on edit."""
        original = make_payment()
        rebuilt = build_payment(
            company="Acme LLC",
            amount=Decimal("50"),
            currency=Currency.GEL,
            payment_date=date(2025, 1, 20),
            exchange_rate=Decimal("1"),
            payment_id=original.id,
        )
        assert rebuilt.id == original.id
