"""
Two-Stage Payment Input Validation

DESIGN DECISION: Raw form input is validated before anything is converted
or stored.

STAGE 1 - SCHEMA VALIDATION:
- Company present and not longer than the stored column
- Amount and exchange rate parse as positive decimals
- Amount has at most two decimal places
- Currency is one of the supported ones

STAGE 2 - SEMANTIC VALIDATION:
- Payment date too far in the future
- A foreign currency entered with a rate of exactly 1
- A payment that looks like one already recorded

Stage 2 only runs when stage 1 passes.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; errors block submission, warnings do not.
"""

import datetime as dt
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

import structlog

from taxledger.config import LedgerSettings, get_settings
from taxledger.models.payment import (
    AMOUNT_DECIMAL_PLACES,
    COMPANY_MAX_LENGTH,
    Currency,
    ValidationIssue,
    ValidationResult,
)
from taxledger.services.storage import StorageError, StorageInterface


logger = structlog.get_logger(__name__)

RawNumber = Union[str, int, float, Decimal, None]


def parse_decimal(value: RawNumber) -> Optional[Decimal]:
    """
    Parse user input into a Decimal.

    Accepts a comma as the decimal separator. Returns None for
    empty or unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        parsed = value
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            return None
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return None
    return parsed if parsed.is_finite() else None


class PaymentInputValidator:
    """
    Validates payment entry input through a two-stage pipeline.

    Stage 1: Schema validation (no storage needed)
    Stage 2: Semantic validation (storage optional, for duplicate checks)
    """

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        """
        Args:
            storage: Used to look for duplicates. If None, the check is skipped.
            settings: Ledger settings; loaded from the environment if None.
        """
        self._storage = storage
        self._settings = settings or get_settings().ledger

    def _validate_schema(
        self,
        company: Optional[str],
        amount: Optional[Decimal],
        currency: Optional[str],
        exchange_rate: Optional[Decimal],
    ) -> list[ValidationIssue]:
        issues = []

        if not company or not company.strip():
            issues.append(ValidationIssue(
                field="company",
                issue_type="missing",
                message="Company name is required",
                severity="error",
                suggested_fix="Enter who paid you",
            ))
        elif len(company.strip()) > COMPANY_MAX_LENGTH:
            issues.append(ValidationIssue(
                field="company",
                issue_type="too_long",
                message=f"Company name is longer than {COMPANY_MAX_LENGTH} characters",
                severity="error",
                suggested_fix="Shorten the name",
            ))

        if amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be a number",
                severity="error",
                suggested_fix="Use digits and a decimal point, e.g. 1500.50",
            ))
        elif amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
            ))
        elif amount.normalize().as_tuple().exponent < -AMOUNT_DECIMAL_PLACES:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="too_precise",
                message=f"Amount has more than {AMOUNT_DECIMAL_PLACES} decimal places",
                severity="error",
                suggested_fix="Round the amount to whole cents",
            ))

        if currency not in {c.value for c in Currency}:
            issues.append(ValidationIssue(
                field="currency",
                issue_type="invalid_value",
                message=f"Unsupported currency: {currency}",
                severity="error",
                suggested_fix="Choose EUR, USD or GEL",
            ))

        if exchange_rate is None:
            issues.append(ValidationIssue(
                field="exchange_rate",
                issue_type="invalid_value",
                message="Exchange rate must be a number",
                severity="error",
                suggested_fix="Fetch the rate or enter it manually",
            ))
        elif exchange_rate <= 0:
            issues.append(ValidationIssue(
                field="exchange_rate",
                issue_type="invalid_value",
                message="Exchange rate must be greater than zero",
                severity="error",
            ))

        return issues

    def _validate_semantic(
        self,
        company: str,
        amount: Decimal,
        currency: Currency,
        payment_date: dt.date,
        exchange_rate: Decimal,
        today: dt.date,
    ) -> list[ValidationIssue]:
        issues = []

        max_future_date = today + dt.timedelta(days=self._settings.future_date_tolerance_days)
        if payment_date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Payment date ({payment_date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if currency != self._settings.home_currency and exchange_rate == 1:
            issues.append(ValidationIssue(
                field="exchange_rate",
                issue_type="suspicious_value",
                message=f"Exchange rate for {currency.value} is exactly 1",
                severity="warning",
                suggested_fix="Fetch the official rate for the payment date",
            ))

        issues.extend(self._check_duplicates(company, amount, currency, payment_date))
        return issues

    def _check_duplicates(
        self,
        company: str,
        amount: Decimal,
        currency: Currency,
        payment_date: dt.date,
    ) -> list[ValidationIssue]:
        """A payment with the same company, date, amount and currency."""
        if self._storage is None:
            return []

        name = company.strip().casefold()
        try:
            existing = self._storage.payments.first(
                lambda p: (
                    p.date == payment_date
                    and p.amount == amount
                    and p.currency == currency
                    and p.company.casefold() == name
                )
            )
        except StorageError as e:
            # The duplicate check is advisory; entry can go ahead without it
            logger.warning("duplicate_check_failed", error=str(e))
            return []

        if existing is None:
            return []
        return [ValidationIssue(
            field="duplicate",
            issue_type="potential_duplicate",
            message=(
                f"A payment of {amount} {currency.value} from {company.strip()} "
                f"on {payment_date} is already recorded"
            ),
            severity="warning",
            suggested_fix="Please verify this isn't a duplicate entry",
        )]

    def validate(
        self,
        company: Optional[str],
        amount: RawNumber,
        currency: Union[Currency, str, None],
        payment_date: dt.date,
        exchange_rate: RawNumber,
        today: Optional[dt.date] = None,
    ) -> ValidationResult:
        """
        Run the full validation pipeline on raw input.

        Returns:
            ValidationResult with all issues found; parsed amount and
            rate are filled in when there are no errors
        """
        parsed_amount = parse_decimal(amount)
        parsed_rate = parse_decimal(exchange_rate)
        currency_code = currency.value if isinstance(currency, Currency) else currency

        issues = self._validate_schema(company, parsed_amount, currency_code, parsed_rate)
        schema_valid = not any(issue.severity == "error" for issue in issues)

        if schema_valid:
            issues.extend(self._validate_semantic(
                company,
                parsed_amount,
                Currency(currency_code),
                payment_date,
                parsed_rate,
                today or dt.date.today(),
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return ValidationResult(
            is_valid=is_valid,
            issues=issues,
            warnings=[i.message for i in issues if i.severity == "warning"],
            amount=parsed_amount if is_valid else None,
            exchange_rate=parsed_rate if is_valid else None,
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show next to the payment form.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []

        if result.has_errors:
            lines.append("❌ The payment cannot be saved yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        lines.append("")
        if result.is_valid:
            lines.append("You can still save, but please review carefully.")
        else:
            lines.append("Please fix the issues above before saving.")

        return "\n".join(lines)
