"""
Data Models Package

This package contains all Pydantic models used in taxledger.
All records flowing through storage must conform to these schemas.
"""

from taxledger.models.payment import (
    Currency,
    ExchangeRateRecord,
    MonthlySummary,
    MonthTax,
    PaymentGroup,
    PaymentRecord,
    QuickStats,
    ValidationIssue,
    ValidationResult,
    YearlyOverview,
)
from taxledger.models.debt import (
    Debt,
    DebtCurrency,
    DebtFilter,
    DebtPayment,
    DebtStatus,
    DebtType,
)
from taxledger.models.maintenance import (
    MaintenanceRecord,
    MaintenanceStats,
    MaintenanceType,
    ReminderStatus,
    ServiceReminder,
)
from taxledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Income models
    "Currency",
    "ExchangeRateRecord",
    "MonthlySummary",
    "MonthTax",
    "PaymentGroup",
    "PaymentRecord",
    "QuickStats",
    "ValidationIssue",
    "ValidationResult",
    "YearlyOverview",
    # Debt models
    "Debt",
    "DebtCurrency",
    "DebtFilter",
    "DebtPayment",
    "DebtStatus",
    "DebtType",
    # Maintenance models
    "MaintenanceRecord",
    "MaintenanceStats",
    "MaintenanceType",
    "ReminderStatus",
    "ServiceReminder",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
