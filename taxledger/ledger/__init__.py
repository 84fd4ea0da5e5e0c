"""Ledger package: income aggregation, conversion, debts and maintenance."""

from taxledger.ledger.aggregator import InconsistentSummaryError, LedgerAggregator
from taxledger.ledger.conversion import build_payment, convert_to_home
from taxledger.ledger.debts import DebtBook, DebtPaymentError
from taxledger.ledger.maintenance import MaintenanceLog

__all__ = [
    "DebtBook",
    "DebtPaymentError",
    "InconsistentSummaryError",
    "LedgerAggregator",
    "MaintenanceLog",
    "build_payment",
    "convert_to_home",
]
