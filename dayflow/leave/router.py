"""Leave router — apply, own listings and balances, HR review and decisions.

Routes:
    POST /leave                       — Apply (pending)
    GET  /leave/my                    — Own requests + balance
    GET  /leave/balance               — Own balance
    GET  /leave/balance/{employee_id} — Any employee's balance (read_all)
    GET  /leave                       — All requests with filters (read_all)
    GET  /leave/stats                 — Yearly statistics (read_all)
    GET  /leave/{id}                  — One request (owner or read_all)
    PUT  /leave/{id}/approve          — pending → approved
    PUT  /leave/{id}/reject           — pending → rejected
    PUT  /leave/{id}/cancel           — pending/approved → cancelled
"""


import uuid
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.attendance.aggregator import local_date
from dayflow.auth.dependencies import is_allowed, require_permission
from dayflow.common.constants import Department, LeaveStatus, LeaveType
from dayflow.common.exceptions import ForbiddenException
from dayflow.common.pagination import PaginationParams
from dayflow.core_hr.models import Employee
from dayflow.database import get_db
from dayflow.leave.schemas import (
    LeaveBalanceResponse,
    LeaveCancelRequest,
    LeaveDecisionRequest,
    LeaveListResponse,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveStatsResponse,
    MyLeavesResponse,
)
from dayflow.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


def _this_year() -> int:
    return local_date(datetime.now(timezone.utc)).year


# ── POST / ──────────────────────────────────────────────────────────

@router.post("", response_model=LeaveRequestOut, status_code=201)
async def apply_leave(
    body: LeaveRequestCreate,
    employee: Employee = Depends(require_permission("leave:request")),
    db: AsyncSession = Depends(get_db),
):
    leave = await LeaveService.apply(db, employee.id, body)
    return LeaveRequestOut.model_validate(leave)


# ── Own views ───────────────────────────────────────────────────────

@router.get("/my", response_model=MyLeavesResponse)
async def my_leaves(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    status: Optional[LeaveStatus] = Query(None),
    employee: Employee = Depends(require_permission("leave:read_own")),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.list_mine(db, employee.id, year=year, status=status)


@router.get("/balance", response_model=LeaveBalanceResponse)
async def my_balance(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(require_permission("leave:read_own")),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_balance(db, employee.id, year or _this_year())


@router.get("/balance/{employee_id}", response_model=LeaveBalanceResponse)
async def employee_balance(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(require_permission("leave:read_all")),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_balance(db, employee_id, year or _this_year())


# ── HR views ────────────────────────────────────────────────────────

@router.get("", response_model=LeaveListResponse)
async def list_leaves(
    status: Optional[LeaveStatus] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    leave_type: Optional[LeaveType] = Query(None),
    department: Optional[Department] = Query(None),
    from_date: Optional[date] = Query(None, alias="from"),
    to_date: Optional[date] = Query(None, alias="to"),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(require_permission("leave:read_all")),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.list_all(
        db,
        pagination,
        status=status,
        employee_id=employee_id,
        leave_type=leave_type,
        department=department.value if department else None,
        from_date=from_date,
        to_date=to_date,
    )


@router.get("/stats", response_model=LeaveStatsResponse)
async def leave_stats(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(require_permission("leave:read_all")),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.stats(db, year or _this_year())


@router.get("/{request_id}", response_model=LeaveRequestOut)
async def get_leave(
    request_id: uuid.UUID,
    request: Request,
    employee: Employee = Depends(require_permission("leave:read_own")),
    db: AsyncSession = Depends(get_db),
):
    leave = await LeaveService.get_request(db, request_id)
    if leave.employee_id != employee.id and not is_allowed(
        request.state.user_role, "leave:read_all",
    ):
        raise ForbiddenException("You can only view your own leave requests.")
    return LeaveRequestOut.model_validate(leave)


# ── Decisions ───────────────────────────────────────────────────────

@router.put("/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: uuid.UUID,
    body: LeaveDecisionRequest,
    employee: Employee = Depends(require_permission("leave:decide")),
    db: AsyncSession = Depends(get_db),
):
    leave = await LeaveService.approve(
        db, request_id, employee, admin_comments=body.admin_comments,
    )
    return LeaveRequestOut.model_validate(leave)


@router.put("/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    request_id: uuid.UUID,
    body: LeaveDecisionRequest,
    employee: Employee = Depends(require_permission("leave:decide")),
    db: AsyncSession = Depends(get_db),
):
    leave = await LeaveService.reject(
        db, request_id, employee, admin_comments=body.admin_comments,
    )
    return LeaveRequestOut.model_validate(leave)


@router.put("/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    request_id: uuid.UUID,
    body: LeaveCancelRequest,
    request: Request,
    employee: Employee = Depends(require_permission("leave:cancel_own")),
    db: AsyncSession = Depends(get_db),
):
    leave = await LeaveService.cancel(
        db,
        request_id,
        employee,
        can_cancel_any=is_allowed(request.state.user_role, "leave:cancel_any"),
        reason=body.reason,
    )
    return LeaveRequestOut.model_validate(leave)
