"""
Audit Models for taxledger

Every mutation of the ledger is logged for audit purposes.
This provides:
1. Traceability of how each monthly total came to be
2. Debugging information when summaries and payments disagree
3. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from taxledger.models.payment import utcnow


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every mutating operation has its own event type.
    """
    # Income payments
    PAYMENT_RECORDED = "payment_recorded"
    PAYMENT_DELETED = "payment_deleted"
    PAYMENT_REPLACED = "payment_replaced"
    PAYMENT_VALIDATION_FAILED = "payment_validation_failed"

    # Monthly summaries
    SUMMARY_CREATED = "summary_created"
    SUMMARY_REMOVED = "summary_removed"
    SUMMARY_MISSING = "summary_missing"
    SUMMARIES_REBUILT = "summaries_rebuilt"

    # Exchange rates
    RATE_FETCHED = "rate_fetched"
    RATE_FETCH_FAILED = "rate_fetch_failed"

    # Debts
    DEBT_CREATED = "debt_created"
    DEBT_PAYMENT_RECORDED = "debt_payment_recorded"
    DEBT_DELETED = "debt_deleted"

    # Maintenance
    MAINTENANCE_RECORDED = "maintenance_recorded"
    MAINTENANCE_DELETED = "maintenance_deleted"

    # System events
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'payment', 'summary', 'debt')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking events of one user action
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.payment_recorded(payment_id, company, amount, correlation_id)
        event = AuditEventBuilder.summary_missing(payment_id, 2025, 1, correlation_id)
    """

    @staticmethod
    def payment_recorded(
        payment_id: UUID,
        company: str,
        converted_amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_RECORDED,
            entity_type="payment",
            entity_id=payment_id,
            correlation_id=correlation_id,
            description=f"Payment recorded: {company} - ₾{converted_amount}",
            details={
                "company": company,
                "converted_amount": converted_amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def payment_deleted(
        payment_id: UUID,
        company: str,
        converted_amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_DELETED,
            entity_type="payment",
            entity_id=payment_id,
            correlation_id=correlation_id,
            description=f"Payment deleted: {company} - ₾{converted_amount}",
            details={
                "company": company,
                "converted_amount": converted_amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def payment_replaced(
        old_payment_id: UUID,
        new_payment_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_REPLACED,
            entity_type="payment",
            entity_id=new_payment_id,
            correlation_id=correlation_id,
            description="Payment edited",
            details={
                "old_payment_id": str(old_payment_id),
            },
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="payment",
            correlation_id=correlation_id,
            description=f"Payment input rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def summary_created(
        summary_id: UUID,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_CREATED,
            entity_type="summary",
            entity_id=summary_id,
            correlation_id=correlation_id,
            description=f"Monthly summary created for {year}-{month:02d}",
            details={"year": year, "month": month},
        )

    @staticmethod
    def summary_removed(
        summary_id: UUID,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_REMOVED,
            entity_type="summary",
            entity_id=summary_id,
            correlation_id=correlation_id,
            description=f"Monthly summary removed for {year}-{month:02d}",
            details={"year": year, "month": month},
        )

    @staticmethod
    def summary_missing(
        payment_id: UUID,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_MISSING,
            severity=AuditSeverity.WARNING,
            entity_type="payment",
            entity_id=payment_id,
            correlation_id=correlation_id,
            description=f"No monthly summary for {year}-{month:02d} while deleting payment",
            details={"year": year, "month": month},
        )

    @staticmethod
    def summaries_rebuilt(
        summary_count: int,
        payment_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARIES_REBUILT,
            entity_type="summary",
            correlation_id=correlation_id,
            description=f"Rebuilt {summary_count} summaries from {payment_count} payments",
            details={
                "summary_count": summary_count,
                "payment_count": payment_count,
            },
        )

    @staticmethod
    def rate_fetched(
        currency: str,
        rate: str,
        rate_date: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATE_FETCHED,
            entity_type="exchange_rate",
            correlation_id=correlation_id,
            description=f"Rate fetched: {currency} = {rate} on {rate_date}",
            details={
                "currency": currency,
                "rate": rate,
                "date": rate_date,
            },
        )

    @staticmethod
    def rate_fetch_failed(
        currency: str,
        rate_date: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATE_FETCH_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="exchange_rate",
            correlation_id=correlation_id,
            description=f"Rate unavailable: {currency} on {rate_date}",
            error_message=error_message,
            details={"currency": currency, "date": rate_date},
        )

    @staticmethod
    def debt_created(
        debt_id: UUID,
        person_name: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_CREATED,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Debt created: {person_name} - {amount}",
            details={"person_name": person_name, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def debt_payment_recorded(
        debt_id: UUID,
        amount: str,
        remaining: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_PAYMENT_RECORDED,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Debt repayment of {amount}, {remaining} remaining",
            details={"amount": amount, "remaining": remaining},
            is_user_action=True,
        )

    @staticmethod
    def debt_deleted(
        debt_id: UUID,
        payment_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_DELETED,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Debt deleted with {payment_count} repayments",
            details={"payment_count": payment_count},
            is_user_action=True,
        )

    @staticmethod
    def maintenance_recorded(
        record_id: UUID,
        maintenance_type: str,
        mileage: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MAINTENANCE_RECORDED,
            entity_type="maintenance",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Maintenance recorded: {maintenance_type} at {mileage} km",
            details={"type": maintenance_type, "mileage": mileage},
            is_user_action=True,
        )

    @staticmethod
    def maintenance_deleted(
        record_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MAINTENANCE_DELETED,
            entity_type="maintenance",
            entity_id=record_id,
            correlation_id=correlation_id,
            description="Maintenance record deleted",
            is_user_action=True,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
