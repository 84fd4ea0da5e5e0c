"""Payment input validation package."""

from taxledger.validation.validator import PaymentInputValidator, parse_decimal

__all__ = ["PaymentInputValidator", "parse_decimal"]
