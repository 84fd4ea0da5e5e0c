"""
Vehicle Maintenance Log

Service records, next-service reminders and cost statistics.

Costs are converted to GEL with fixed approximate rates from
MaintenanceSettings. They are for statistics only and are never mixed
with income conversion, which always uses the rate of the payment date.
"""

import datetime as dt
from collections import defaultdict
from decimal import Decimal
from typing import Optional
from uuid import UUID

from taxledger.audit import AuditLogger
from taxledger.config import MaintenanceSettings, get_settings
from taxledger.models.audit import AuditEventBuilder
from taxledger.models.maintenance import (
    MaintenanceRecord,
    MaintenanceStats,
    MaintenanceType,
    ReminderStatus,
    ServiceReminder,
)
from taxledger.services.storage import StorageInterface


class MaintenanceLog:
    """Maintenance record keeping for one vehicle."""

    def __init__(
        self,
        storage: StorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[MaintenanceSettings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().maintenance

    def add(self, record: MaintenanceRecord, correlation_id: Optional[UUID] = None) -> MaintenanceRecord:
        with self._storage.transaction():
            self._storage.maintenance.insert(record)

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.maintenance_recorded(
                record_id=record.id,
                maintenance_type=record.type.value,
                mileage=record.mileage,
                correlation_id=correlation_id,
            ))
        return record

    def delete(self, record_id: UUID, correlation_id: Optional[UUID] = None) -> bool:
        with self._storage.transaction():
            deleted = self._storage.maintenance.delete(record_id)

        if deleted and self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.maintenance_deleted(
                record_id=record_id,
                correlation_id=correlation_id,
            ))
        return deleted

    def history(self, year: Optional[int] = None) -> list[MaintenanceRecord]:
        """Records newest first, optionally limited to one year."""
        return self._storage.maintenance.query(
            (lambda r: r.date.year == year) if year is not None else None,
            key=lambda r: (r.date, r.mileage),
            reverse=True,
        )

    def last_record(self) -> Optional[MaintenanceRecord]:
        records = self.history()
        return records[0] if records else None

    def available_years(self) -> list[int]:
        return sorted({r.date.year for r in self._storage.maintenance.query()}, reverse=True)

    # -------------------------------------------------------------------------
    # Reminders
    # -------------------------------------------------------------------------

    def reminder_for(
        self,
        record: MaintenanceRecord,
        current_mileage: Optional[int] = None,
        today: Optional[dt.date] = None,
    ) -> ServiceReminder:
        """
        Urgency of a record's next service.

        The mileage target counts only when the current mileage is known
        (a positive reading). The more urgent of the two targets wins.
        """
        today = today or dt.date.today()
        remaining_km = None
        days_until = None

        if record.next_service_mileage is not None and current_mileage and current_mileage > 0:
            remaining_km = record.next_service_mileage - current_mileage
        if record.next_service_date is not None:
            days_until = (record.next_service_date - today).days

        if remaining_km is None and days_until is None:
            status = ReminderStatus.UNKNOWN
        elif (remaining_km is not None and remaining_km < 0) or (days_until is not None and days_until < 0):
            status = ReminderStatus.OVERDUE
        elif (
            (remaining_km is not None and remaining_km < self._settings.mileage_warning_km)
            or (days_until is not None and days_until < self._settings.date_warning_days)
        ):
            status = ReminderStatus.DUE_SOON
        else:
            status = ReminderStatus.OK

        return ServiceReminder(
            record=record,
            status=status,
            remaining_km=remaining_km,
            days_until=days_until,
        )

    def upcoming_services(
        self,
        current_mileage: Optional[int] = None,
        today: Optional[dt.date] = None,
    ) -> list[ServiceReminder]:
        """
        Reminders for every record with a next-service target.

        Ordered by next service mileage; records with only a date
        target come last, nearest date first.
        """
        records = [r for r in self._storage.maintenance.query() if r.has_next_service]
        records.sort(key=lambda r: (
            r.next_service_mileage is None,
            r.next_service_mileage or 0,
            r.next_service_date or dt.date.max,
        ))
        return [self.reminder_for(r, current_mileage, today) for r in records]

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def cost_in_gel(self, record: MaintenanceRecord) -> Decimal:
        return record.cost * self._settings.rate_to_gel(record.currency)

    def stats(self, year: Optional[int] = None) -> MaintenanceStats:
        """
        Cost statistics in GEL.

        total_cost and record_count cover every record. The breakdowns
        cover `year` (the current year if None): cost by type with the
        most expensive first, and cost by month in calendar order.
        """
        records = self._storage.maintenance.query()
        year = year or dt.date.today().year

        by_type: dict[MaintenanceType, Decimal] = defaultdict(Decimal)
        by_month: dict[int, Decimal] = defaultdict(Decimal)
        for record in records:
            if record.date.year != year:
                continue
            cost = self.cost_in_gel(record)
            by_type[record.type] += cost
            by_month[record.date.month] += cost

        return MaintenanceStats(
            total_cost=sum((self.cost_in_gel(r) for r in records), Decimal("0")),
            cost_by_type=sorted(by_type.items(), key=lambda item: item[1], reverse=True),
            cost_by_month=sorted(by_month.items()),
            record_count=len(records),
        )
