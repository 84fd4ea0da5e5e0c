"""Tests for payment input validation."""

import pytest
from datetime import date
from decimal import Decimal

from taxledger.models.payment import Currency
from taxledger.validation import PaymentInputValidator, parse_decimal


TODAY = date(2025, 6, 1)


@pytest.fixture
def validator(ledger_settings):
    return PaymentInputValidator(settings=ledger_settings)


class TestParseDecimal:
    """Tests for parse_decimal."""

    @pytest.mark.parametrize("raw, expected", [
        ("100", Decimal("100")),
        (" 50.33 ", Decimal("50.33")),
        ("12,5", Decimal("12.5")),
        (7, Decimal("7")),
        (Decimal("3.1"), Decimal("3.1")),
    ])
    def test_valid(self, raw, expected):
        """Test accepted spellings."""
        assert parse_decimal(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", "NaN", "Infinity", Decimal("NaN")])
    def test_invalid(self, raw):
        """Test rejected input."""
        assert parse_decimal(raw) is None


class TestSchemaValidation:
    """Stage 1 checks."""

    def test_valid_input(self, validator):
        """Test a clean payment."""
        result = validator.validate("Acme LLC", "100", Currency.EUR, TODAY, "2.95", today=TODAY)
        assert result.is_valid
        assert result.issues == []
        assert result.amount == Decimal("100")
        assert result.exchange_rate == Decimal("2.95")

    def test_missing_company(self, validator):
        """Test company is required."""
        result = validator.validate("  ", "100", "GEL", TODAY, "1", today=TODAY)
        assert not result.is_valid
        assert [i.field for i in result.issues] == ["company"]
        assert result.amount is None

    def test_bad_numbers(self, validator):
        """Test amount and rate must be positive numbers."""
        result = validator.validate("Acme", "abc", "EUR", TODAY, "0", today=TODAY)
        assert {i.field for i in result.issues} == {"amount", "exchange_rate"}
        assert result.error_count == 2

    def test_unknown_currency(self, validator):
        """Test only supported currencies pass."""
        result = validator.validate("Acme", "1", "BYN", TODAY, "1", today=TODAY)
        assert [i.field for i in result.issues] == ["currency"]

    def test_company_too_long(self, validator):
        """Test names longer than the stored column are rejected."""
        result = validator.validate("X" * 201, "100", "GEL", TODAY, "1", today=TODAY)
        assert [(i.field, i.issue_type) for i in result.issues] == [("company", "too_long")]
        assert validator.validate("X" * 200, "100", "GEL", TODAY, "1", today=TODAY).is_valid

    @pytest.mark.parametrize("raw", ["100.12345", "0.001"])
    def test_amount_beyond_cents(self, validator, raw):
        """Test amounts must be whole cents."""
        result = validator.validate("Acme", raw, "GEL", TODAY, "1", today=TODAY)
        assert [(i.field, i.issue_type) for i in result.issues] == [("amount", "too_precise")]

    @pytest.mark.parametrize("raw", ["100.12", "100.120", "1E+2"])
    def test_amount_in_cents(self, validator, raw):
        """Test trailing zeros and exponents are fine."""
        assert validator.validate("Acme", raw, "GEL", TODAY, "1", today=TODAY).is_valid

    def test_semantic_checks_skipped_on_errors(self, validator):
        """Test stage 2 does not run after a schema error."""
        result = validator.validate("", "1", "EUR", date(2030, 1, 1), "1", today=TODAY)
        assert [i.issue_type for i in result.issues] == ["missing"]


class TestSemanticValidation:
    """Stage 2 checks."""

    def test_future_date_warns(self, validator):
        """Test dates beyond the tolerance warn but stay valid."""
        result = validator.validate("Acme", "1", "GEL", date(2025, 6, 5), "1", today=TODAY)
        assert result.is_valid
        assert result.issues[0].issue_type == "future_date"
        assert len(result.warnings) == 1

    def test_tomorrow_is_tolerated(self, validator):
        """Test the one-day tolerance."""
        result = validator.validate("Acme", "1", "GEL", date(2025, 6, 2), "1", today=TODAY)
        assert result.issues == []

    def test_foreign_rate_of_one_warns(self, validator):
        """Test a foreign currency with an unconverted rate."""
        result = validator.validate("Acme", "1", "USD", TODAY, "1", today=TODAY)
        assert result.is_valid
        assert result.issues[0].issue_type == "suspicious_value"

    def test_duplicate_warns(self, memory_storage, ledger_settings, make_payment):
        """Test a payment that matches a stored one."""
        memory_storage.payments.insert(make_payment("100", TODAY, company="Acme LLC"))
        validator = PaymentInputValidator(memory_storage, ledger_settings)

        result = validator.validate("acme llc", "100", "GEL", TODAY, "1", today=TODAY)
        assert result.is_valid
        assert result.issues[0].issue_type == "potential_duplicate"


class TestUserFriendlySummary:
    """Tests for the summary shown next to the form."""

    def test_all_clear(self, validator):
        """Test clean input."""
        result = validator.validate("Acme", "1", "GEL", TODAY, "1", today=TODAY)
        assert validator.get_user_friendly_summary(result) == "✅ All checks passed!"

    def test_errors_listed(self, validator):
        """Test errors and fixes appear."""
        result = validator.validate("", "x", "GEL", TODAY, "1", today=TODAY)
        summary = validator.get_user_friendly_summary(result)
        assert "Company name is required" in summary
        assert "Please fix the issues above before saving." in summary
