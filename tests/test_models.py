"""
Tests for taxledger models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (with in-memory and SQLite storage)
3. No real API calls in tests (use mocks)
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from taxledger.models.payment import (
    Currency,
    MonthlySummary,
    PaymentRecord,
    ValidationIssue,
    ValidationResult,
)
from taxledger.models.debt import Debt, DebtCurrency, DebtStatus, DebtType
from taxledger.models.maintenance import MaintenanceRecord, MaintenanceType
from taxledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestPaymentModels:
    """Tests for income payment models."""

    def _payment(self, **overrides):
        fields = dict(
            company="Acme LLC",
            amount=Decimal("100"),
            currency=Currency.EUR,
            date=date(2025, 3, 10),
            exchange_rate=Decimal("2.9"),
            converted_amount=Decimal("290"),
        )
        fields.update(overrides)
        return PaymentRecord(**fields)

    def test_payment_creation(self):
        """Test PaymentRecord creation and derived period."""
        payment = self._payment()
        assert payment.company == "Acme LLC"
        assert payment.period == (2025, 3)

    def test_payment_strips_whitespace(self):
        """Test that whitespace is stripped from company name."""
        assert self._payment(company="  Acme LLC  ").company == "Acme LLC"

    def test_payment_rejects_empty_company(self):
        """Test that a blank company is rejected."""
        with pytest.raises(ValidationError):
            self._payment(company="   ")

    def test_payment_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValidationError):
            self._payment(amount=Decimal("0"))
        with pytest.raises(ValidationError):
            self._payment(amount=Decimal("-5"))

    def test_payment_rejects_non_positive_rate(self):
        """Test that a zero rate is rejected."""
        with pytest.raises(ValidationError):
            self._payment(exchange_rate=Decimal("0"))

    def test_payment_is_frozen(self):
        """Test that converted_amount cannot be changed after creation."""
        payment = self._payment()
        with pytest.raises(ValidationError):
            payment.converted_amount = Decimal("1")

    def test_currency_symbols(self):
        """Test currency display symbols."""
        assert Currency.EUR.symbol == "€"
        assert Currency.USD.symbol == "$"
        assert Currency.GEL.symbol == "₾"


class TestMonthlySummary:
    """Tests for MonthlySummary derived values."""

    def test_tax_amounts(self):
        """Test tax on monthly and cumulative income at a given rate."""
        summary = MonthlySummary(
            year=2025,
            month=2,
            total_income=Decimal("651"),
            cumulative_income=Decimal("1102"),
            payment_count=2,
        )
        assert summary.tax_for(Decimal("0.01")) == Decimal("6.51")
        assert summary.cumulative_tax_for(Decimal("0.01")) == Decimal("11.02")
        assert summary.tax_for(Decimal("0.2")) == Decimal("130.2")

    def test_month_name(self):
        """Test month name lookup."""
        assert MonthlySummary(year=2025, month=3).month_name == "March"

    def test_month_bounds(self):
        """Test month must be 1..12."""
        with pytest.raises(ValidationError):
            MonthlySummary(year=2025, month=13)
        with pytest.raises(ValidationError):
            MonthlySummary(year=2025, month=0)

    def test_payment_count_cannot_go_negative(self):
        """Test assignment is validated."""
        summary = MonthlySummary(year=2025, month=1, payment_count=1)
        with pytest.raises(ValidationError):
            summary.payment_count = -1


class TestDebtModels:
    """Tests for debt models."""

    def test_new_debt_defaults(self):
        """Test remaining defaults to original and status to Pending."""
        debt = Debt(
            person_name="  Nino  ",
            original_amount=Decimal("500"),
            currency=DebtCurrency.GEL,
            type=DebtType.I_OWE,
        )
        assert debt.person_name == "Nino"
        assert debt.remaining_amount == Decimal("500")
        assert debt.status == DebtStatus.PENDING
        assert debt.paid_amount == Decimal("0")
        assert debt.payment_progress == Decimal("0")

    def test_progress(self):
        """Test paid amount and progress."""
        debt = Debt(
            person_name="Giorgi",
            original_amount=Decimal("400"),
            remaining_amount=Decimal("100"),
            currency=DebtCurrency.USD,
            type=DebtType.OWES_ME,
        )
        assert debt.paid_amount == Decimal("300")
        assert debt.payment_progress == Decimal("0.75")

    def test_past_due(self):
        """Test past due only for unpaid debts with an earlier due date."""
        today = date(2025, 6, 1)
        debt = Debt(
            person_name="Nino",
            original_amount=Decimal("10"),
            currency=DebtCurrency.BYN,
            type=DebtType.I_OWE,
            due_date=today - timedelta(days=1),
        )
        assert debt.is_past_due(today)
        debt.status = DebtStatus.PAID
        assert not debt.is_past_due(today)

    def test_byn_symbol(self):
        """Test the debt-only currency."""
        assert DebtCurrency.BYN.symbol == "Br"


class TestMaintenanceModels:
    """Tests for maintenance records."""

    def test_has_next_service(self):
        """Test next-service detection."""
        record = MaintenanceRecord(date=date(2025, 1, 1), mileage=50000, type=MaintenanceType.OIL_CHANGE)
        assert not record.has_next_service
        record = record.model_copy(update={"next_service_mileage": 60000})
        assert record.has_next_service

    def test_rejects_negative_mileage(self):
        """Test mileage must be non-negative."""
        with pytest.raises(ValidationError):
            MaintenanceRecord(date=date(2025, 1, 1), mileage=-1, type=MaintenanceType.TIRES)


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.PAYMENT_RECORDED,
            description="Test event",
        )
        assert event.event_id is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.SUMMARY_CREATED,
            description="Test",
            correlation_id=correlation_id,
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "summary_created"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_audit_event_builder_payment_recorded(self):
        """Test AuditEventBuilder.payment_recorded."""
        payment_id = uuid4()
        event = AuditEventBuilder.payment_recorded(
            payment_id=payment_id,
            company="Acme LLC",
            converted_amount="451",
        )
        assert event.event_type == AuditEventType.PAYMENT_RECORDED
        assert event.entity_id == payment_id
        assert event.is_user_action

    def test_audit_event_builder_summary_missing(self):
        """Test a missing summary is a warning."""
        event = AuditEventBuilder.summary_missing(payment_id=uuid4(), year=2025, month=1)
        assert event.severity == AuditSeverity.WARNING
        assert event.details == {"year": 2025, "month": 1}


class TestValidationResult:
    """Tests for ValidationResult helpers."""

    def test_validation_result_has_errors(self):
        """Test error detection."""
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(field="amount", issue_type="missing", message="x", severity="error"),
                ValidationIssue(field="date", issue_type="future_date", message="y", severity="warning"),
            ],
        )
        assert result.has_errors
        assert result.error_count == 1

    def test_validation_issue_severity_pattern(self):
        """Test unknown severities are rejected."""
        with pytest.raises(ValidationError):
            ValidationIssue(field="a", issue_type="b", message="c", severity="fatal")
