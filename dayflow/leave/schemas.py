"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Response / *Out    → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dayflow.common.constants import (
    HalfDayType,
    LeaveCategory,
    LeaveStatus,
    LeaveType,
)
from dayflow.common.pagination import PaginationMeta
from dayflow.core_hr.schemas import EmployeeBrief


# ═════════════════════════════════════════════════════════════════════
# Leave Request — write
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for applying for leave."""

    leave_type: LeaveType
    title: Optional[str] = Field(None, max_length=200)
    reason: str = Field(..., min_length=1, max_length=2000)
    start_date: date
    end_date: date
    is_half_day: bool = False
    half_day_type: Optional[HalfDayType] = None

    @model_validator(mode="after")
    def _half_day_defaults(self) -> "LeaveRequestCreate":
        if self.half_day_type is not None and not self.is_half_day:
            raise ValueError("half_day_type is only valid for half-day requests")
        if self.is_half_day and self.half_day_type is None:
            self.half_day_type = HalfDayType.first_half
        return self


class LeaveDecisionRequest(BaseModel):
    """Payload for approve / reject."""

    admin_comments: Optional[str] = Field(None, max_length=2000)


class LeaveCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


# ═════════════════════════════════════════════════════════════════════
# Leave Request — read
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    """Full leave request representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: LeaveType
    category: LeaveCategory
    title: Optional[str] = None
    reason: str
    start_date: date
    end_date: date
    total_days: Decimal
    is_half_day: bool
    half_day_type: Optional[HalfDayType] = None
    status: LeaveStatus
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[uuid.UUID] = None
    rejected_at: Optional[datetime] = None
    admin_comments: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    employee: Optional[EmployeeBrief] = None


# ═════════════════════════════════════════════════════════════════════
# Balances
# ═════════════════════════════════════════════════════════════════════


class BalanceEntry(BaseModel):
    category: LeaveCategory
    allocated: Decimal
    used: Decimal
    remaining: Decimal


class LeaveBalanceResponse(BaseModel):
    employee_id: uuid.UUID
    year: int
    balances: list[BalanceEntry]

    @classmethod
    def from_ledger(
        cls,
        employee_id: uuid.UUID,
        year: int,
        ledger: dict[LeaveCategory, dict[str, Decimal]],
    ) -> "LeaveBalanceResponse":
        return cls(
            employee_id=employee_id,
            year=year,
            balances=[
                BalanceEntry(category=category, **values)
                for category, values in ledger.items()
            ],
        )


# ═════════════════════════════════════════════════════════════════════
# Lists / stats
# ═════════════════════════════════════════════════════════════════════


class MyLeavesResponse(BaseModel):
    data: list[LeaveRequestOut]
    balance: LeaveBalanceResponse


class LeaveListResponse(BaseModel):
    data: list[LeaveRequestOut]
    meta: PaginationMeta
    pending_count: int


class LeaveStatsResponse(BaseModel):
    year: int
    pending_count: int
    approved_days_by_type: dict[str, Decimal]
    approved_days_by_month: dict[int, Decimal]
