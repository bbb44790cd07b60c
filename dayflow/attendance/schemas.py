"""Attendance Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Request            → request bodies (write)
  - *Response           → response bodies (read)
  - *Summary / *Item    → compact read representations

Hours are stored unrounded and quantized to two places here.
"""


import uuid
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from dayflow.common.constants import (
    AttendanceStatus,
    CheckMethod,
    RegularizationStatus,
)
from dayflow.core_hr.schemas import EmployeeBrief

_HUNDREDTH = Decimal("0.01")


def _hours(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(value).quantize(_HUNDREDTH, rounding=ROUND_HALF_UP)


# ═════════════════════════════════════════════════════════════════════
# Check in / out
# ═════════════════════════════════════════════════════════════════════


class CheckRequest(BaseModel):
    """Payload for checking in or out."""

    location: str = Field(default="Office", max_length=100)
    method: CheckMethod = CheckMethod.web


class BreakRequest(CheckRequest):
    """Check-out payload; break time is deducted from worked hours."""

    break_minutes: int = Field(default=0, ge=0, le=24 * 60)


# ═════════════════════════════════════════════════════════════════════
# Day record
# ═════════════════════════════════════════════════════════════════════


class AttendanceRecordResponse(BaseModel):
    """One day record."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    date: date
    check_in_at: Optional[datetime] = None
    check_in_location: Optional[str] = None
    check_in_method: Optional[CheckMethod] = None
    check_out_at: Optional[datetime] = None
    check_out_location: Optional[str] = None
    check_out_method: Optional[CheckMethod] = None
    status: AttendanceStatus
    total_hours: Optional[Decimal] = None
    overtime_hours: Decimal = Decimal("0")
    break_minutes: int = 0
    note: Optional[str] = None
    marked_by: Optional[uuid.UUID] = None
    is_regularized: bool = False
    regularization_status: Optional[RegularizationStatus] = None
    regularization_reason: Optional[str] = None
    requested_check_in: Optional[datetime] = None
    requested_check_out: Optional[datetime] = None
    regularization_comments: Optional[str] = None

    @field_validator("total_hours", "overtime_hours", mode="after")
    @classmethod
    def _round_hours(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return _hours(v)


# ═════════════════════════════════════════════════════════════════════
# Manual marking / regularization
# ═════════════════════════════════════════════════════════════════════


class MarkAttendanceRequest(BaseModel):
    """HR/admin manual marking for any employee and date."""

    employee_id: uuid.UUID
    date: date
    status: AttendanceStatus
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    break_minutes: int = Field(default=0, ge=0, le=24 * 60)
    note: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def _check_times(self) -> "MarkAttendanceRequest":
        if self.check_in and self.check_out and self.check_out < self.check_in:
            raise ValueError("check_out must not be before check_in")
        return self


class RegularizationRequest(BaseModel):
    """Employee asks for corrected times on a past day."""

    date: date
    reason: str = Field(..., min_length=3, max_length=1000)
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_times(self) -> "RegularizationRequest":
        if self.check_in is None and self.check_out is None:
            raise ValueError("At least one of check_in or check_out is required")
        if self.check_in and self.check_out and self.check_out < self.check_in:
            raise ValueError("check_out must not be before check_in")
        return self


class RegularizationDecision(BaseModel):
    action: Literal["approve", "reject"]
    comments: Optional[str] = Field(None, max_length=1000)


# ═════════════════════════════════════════════════════════════════════
# Summaries
# ═════════════════════════════════════════════════════════════════════


class AttendanceSummary(BaseModel):
    """Counts per status over a date range plus hours."""

    present: int = 0
    late: int = 0
    half_day: int = 0
    absent: int = 0
    leave: int = 0
    holiday: int = 0
    weekend: int = 0
    worked_days: int = 0
    total_hours: Decimal = Decimal("0")
    avg_hours: Decimal = Decimal("0")
    overtime_hours: Decimal = Decimal("0")

    @field_validator("total_hours", "avg_hours", "overtime_hours", mode="after")
    @classmethod
    def _round_hours(cls, v: Decimal) -> Decimal:
        return _hours(v)

    @classmethod
    def from_aggregate(cls, agg: dict) -> "AttendanceSummary":
        return cls(
            **agg["counts"],
            worked_days=agg["worked_days"],
            total_hours=agg["total_hours"],
            avg_hours=agg["avg_hours"],
            overtime_hours=agg["overtime_hours"],
        )


class MyMonthResponse(BaseModel):
    year: int
    month: int
    records: list[AttendanceRecordResponse]
    summary: AttendanceSummary


class TodayStatusResponse(BaseModel):
    date: date
    checked_in: bool
    checked_out: bool
    status: str
    record: Optional[AttendanceRecordResponse] = None


class RosterItem(BaseModel):
    employee: EmployeeBrief
    status: str
    check_in_at: Optional[datetime] = None
    check_out_at: Optional[datetime] = None
    total_hours: Optional[Decimal] = None

    @field_validator("total_hours", mode="after")
    @classmethod
    def _round_hours(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return _hours(v)


class RosterStats(BaseModel):
    total_employees: int = 0
    present: int = 0
    late: int = 0
    half_day: int = 0
    absent: int = 0
    leave: int = 0
    not_checked_in: int = 0


class RosterResponse(BaseModel):
    date: date
    data: list[RosterItem]
    stats: RosterStats


class WeekDayCell(BaseModel):
    status: str
    check_in_at: Optional[datetime] = None
    check_out_at: Optional[datetime] = None
    total_hours: Optional[Decimal] = None

    @field_validator("total_hours", mode="after")
    @classmethod
    def _round_hours(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return _hours(v)


class WeekRow(BaseModel):
    employee: EmployeeBrief
    days: dict[date, WeekDayCell]


class WeekResponse(BaseModel):
    week_start: date
    week_end: date
    days: list[date]
    data: list[WeekRow]


class EmployeeMonthSummary(BaseModel):
    employee: EmployeeBrief
    summary: AttendanceSummary


class MonthSummaryResponse(BaseModel):
    year: int
    month: int
    data: list[EmployeeMonthSummary]
    stats: AttendanceSummary
