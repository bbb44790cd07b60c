"""Attendance router — check in/out, own views, HR views, marking, regularization.

All endpoints require authentication; HR views and marking are gated by
the policy table.
"""


import uuid
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.attendance.aggregator import local_date
from dayflow.attendance.schemas import (
    AttendanceRecordResponse,
    AttendanceSummary,
    BreakRequest,
    CheckRequest,
    MarkAttendanceRequest,
    MonthSummaryResponse,
    MyMonthResponse,
    RegularizationDecision,
    RegularizationRequest,
    RosterResponse,
    TodayStatusResponse,
    WeekResponse,
)
from dayflow.attendance.service import AttendanceService
from dayflow.auth.dependencies import is_allowed, require_permission
from dayflow.common.exceptions import ForbiddenException
from dayflow.common.pagination import PaginationParams
from dayflow.core_hr.models import Employee
from dayflow.database import get_db

router = APIRouter(prefix="", tags=["attendance"])


def _today() -> date:
    return local_date(datetime.now(timezone.utc))


# ── POST /check-in ──────────────────────────────────────────────────

@router.post("/check-in", response_model=AttendanceRecordResponse)
async def check_in(
    body: CheckRequest,
    employee: Employee = Depends(require_permission("attendance:check")),
    db: AsyncSession = Depends(get_db),
):
    """Open today's record for the current user."""
    record = await AttendanceService.check_in(
        db, employee.id, location=body.location, method=body.method,
    )
    return AttendanceRecordResponse.model_validate(record)


# ── POST /check-out ─────────────────────────────────────────────────

@router.post("/check-out", response_model=AttendanceRecordResponse)
async def check_out(
    body: BreakRequest,
    employee: Employee = Depends(require_permission("attendance:check")),
    db: AsyncSession = Depends(get_db),
):
    """Close today's record and compute worked hours."""
    record = await AttendanceService.check_out(
        db,
        employee.id,
        location=body.location,
        method=body.method,
        break_minutes=body.break_minutes,
    )
    return AttendanceRecordResponse.model_validate(record)


# ── GET /today ──────────────────────────────────────────────────────

@router.get("/today", response_model=TodayStatusResponse)
async def today_status(
    employee: Employee = Depends(require_permission("attendance:read_own")),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.get_today(db, employee.id)


# ── GET /me ─────────────────────────────────────────────────────────

@router.get("/me", response_model=MyMonthResponse)
async def my_month(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    employee: Employee = Depends(require_permission("attendance:read_own")),
    db: AsyncSession = Depends(get_db),
):
    """Own records and summary for a month (default: current month)."""
    today = _today()
    return await AttendanceService.get_my_month(
        db, employee.id, year or today.year, month or today.month,
    )


# ── GET /summary ────────────────────────────────────────────────────

@router.get("/summary", response_model=AttendanceSummary)
async def summary(
    request: Request,
    from_date: date = Query(..., description="Start date (inclusive)"),
    to_date: date = Query(..., description="End date (inclusive)"),
    employee_id: Optional[uuid.UUID] = Query(None),
    employee: Employee = Depends(require_permission("attendance:read_own")),
    db: AsyncSession = Depends(get_db),
):
    """Status counts and hours over a date range. Other employees need read_all."""
    target = employee_id or employee.id
    if target != employee.id and not is_allowed(request.state.user_role, "attendance:read_all"):
        raise ForbiddenException("You can only view your own attendance.")
    return await AttendanceService.summarize(db, target, from_date, to_date)


# ── GET /employees/{employee_id} ────────────────────────────────────

@router.get("/employees/{employee_id}", response_model=list[AttendanceRecordResponse])
async def employee_records(
    employee_id: uuid.UUID,
    from_date: date = Query(...),
    to_date: date = Query(...),
    employee: Employee = Depends(require_permission("attendance:read_all")),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.list_records(db, employee_id, from_date, to_date)


# ── GET /roster ─────────────────────────────────────────────────────

@router.get("/roster", response_model=RosterResponse)
async def roster(
    day: Optional[date] = Query(None, alias="date"),
    department: Optional[str] = Query(None),
    employee: Employee = Depends(require_permission("attendance:read_all")),
    db: AsyncSession = Depends(get_db),
):
    """Every active employee's status for a day (default: today)."""
    return await AttendanceService.get_roster(db, day or _today(), department=department)


# ── GET /week ───────────────────────────────────────────────────────

@router.get("/week", response_model=WeekResponse)
async def week(
    start: Optional[date] = Query(None, description="Any date inside the week"),
    department: Optional[str] = Query(None),
    employee: Employee = Depends(require_permission("attendance:read_all")),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.get_week(db, start or _today(), department=department)


# ── GET /month-summary ──────────────────────────────────────────────

@router.get("/month-summary", response_model=MonthSummaryResponse)
async def month_summary(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    department: Optional[str] = Query(None),
    employee: Employee = Depends(require_permission("attendance:read_all")),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.get_month_summary(
        db, year, month, department=department,
    )


# ── POST /mark ──────────────────────────────────────────────────────

@router.post("/mark", response_model=AttendanceRecordResponse)
async def mark(
    body: MarkAttendanceRequest,
    employee: Employee = Depends(require_permission("attendance:mark")),
    db: AsyncSession = Depends(get_db),
):
    """Manually set a day's status and times for any employee."""
    record = await AttendanceService.mark(db, body, actor_id=employee.id)
    return AttendanceRecordResponse.model_validate(record)


# ── POST /regularizations ───────────────────────────────────────────

@router.post("/regularizations", response_model=AttendanceRecordResponse)
async def request_regularization(
    body: RegularizationRequest,
    employee: Employee = Depends(require_permission("attendance:regularize_request")),
    db: AsyncSession = Depends(get_db),
):
    record = await AttendanceService.request_regularization(db, employee.id, body)
    return AttendanceRecordResponse.model_validate(record)


# ── GET /regularizations/pending ────────────────────────────────────

@router.get("/regularizations/pending")
async def pending_regularizations(
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(require_permission("attendance:regularize_decide")),
    db: AsyncSession = Depends(get_db),
):
    items, meta = await AttendanceService.list_pending_regularizations(db, pagination)
    return {
        "data": [item.model_dump(mode="json") for item in items],
        "meta": meta.model_dump(),
    }


# ── PUT /regularizations/{record_id} ────────────────────────────────

@router.put("/regularizations/{record_id}", response_model=AttendanceRecordResponse)
async def decide_regularization(
    record_id: uuid.UUID,
    body: RegularizationDecision,
    employee: Employee = Depends(require_permission("attendance:regularize_decide")),
    db: AsyncSession = Depends(get_db),
):
    record = await AttendanceService.decide_regularization(
        db, record_id, body, actor_id=employee.id,
    )
    return AttendanceRecordResponse.model_validate(record)
