"""Vehicle maintenance models."""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from taxledger.models.payment import Currency, utcnow


class MaintenanceType(str, Enum):
    """Kinds of service performed on the vehicle."""
    OIL_CHANGE = "Oil Change"
    INSPECTION = "Inspection"
    TIRES = "Tires"
    BRAKES = "Brakes"
    FILTERS = "Filters"
    OTHER = "Other"


class ReminderStatus(str, Enum):
    """How urgent the next service of a record is."""
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    OK = "ok"
    UNKNOWN = "unknown"  # No usable target to compare against


class MaintenanceRecord(BaseModel):
    """One service visit, optionally with the next service target."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(default_factory=uuid4)
    date: dt.date
    mileage: int = Field(..., ge=0, description="Odometer reading in km")
    type: MaintenanceType
    cost: Decimal = Field(default=Decimal("0"), ge=0)
    currency: Currency = Currency.GEL
    notes: str = Field(default="", max_length=1000)
    next_service_mileage: Optional[int] = Field(default=None, ge=0)
    next_service_date: Optional[dt.date] = None
    created_at: dt.datetime = Field(default_factory=utcnow)

    @property
    def has_next_service(self) -> bool:
        return self.next_service_mileage is not None or self.next_service_date is not None


class ServiceReminder(BaseModel):
    """A record with an upcoming service target and its urgency."""

    record: MaintenanceRecord
    status: ReminderStatus
    remaining_km: Optional[int] = None
    days_until: Optional[int] = None


class MaintenanceStats(BaseModel):
    """Cost statistics converted to GEL with approximate rates."""

    total_cost: Decimal = Decimal("0")
    cost_by_type: list[tuple[MaintenanceType, Decimal]] = Field(default_factory=list)
    cost_by_month: list[tuple[int, Decimal]] = Field(default_factory=list)
    record_count: int = 0
