"""Core HR router — employee directory and records.

Routes:
    /employees        — List (read_all), create (hr/admin)
    /employees/stats  — Headcount and today's attendance (hr/admin)
    /employees/me     — Own profile, limited self-service update
    /employees/{id}   — Get (own or read_all), update and deactivate (hr/admin)
"""


import uuid
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.attendance.aggregator import local_date
from dayflow.auth.dependencies import is_allowed, require_permission
from dayflow.common.constants import Department, EmploymentStatus
from dayflow.common.exceptions import ForbiddenException
from dayflow.common.pagination import PaginationParams
from dayflow.core_hr.models import Employee
from dayflow.core_hr.schemas import (
    EmployeeCreate,
    EmployeeDetail,
    EmployeeListItem,
    EmployeeSelfUpdate,
    EmployeeStats,
    EmployeeUpdate,
)
from dayflow.core_hr.service import EmployeeService
from dayflow.database import get_db

router = APIRouter(prefix="", tags=["employees"])


# ── GET /employees — List employees ─────────────────────────────────

@router.get("")
async def list_employees(
    search: Optional[str] = Query(None, description="Search by name, email, code or designation"),
    department: Optional[Department] = Query(None),
    status: Optional[EmploymentStatus] = Query(None),
    is_active: Optional[bool] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(require_permission("employee:read_all")),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await EmployeeService.list_employees(
        db,
        pagination,
        search=search,
        department=department,
        status=status,
        is_active=is_active,
    )
    return {
        "data": [EmployeeListItem.model_validate(e).model_dump(mode="json") for e in rows],
        "meta": meta.model_dump(),
    }


# ── POST /employees — Create ────────────────────────────────────────

@router.post("", response_model=EmployeeDetail, status_code=201)
async def create_employee(
    body: EmployeeCreate,
    employee: Employee = Depends(require_permission("employee:create")),
    db: AsyncSession = Depends(get_db),
):
    """Create the employee plus default salary structure and leave balances."""
    created = await EmployeeService.create_employee(db, body, actor_id=employee.id)
    return EmployeeDetail.model_validate(created)


# ── GET /employees/stats ────────────────────────────────────────────

@router.get("/stats", response_model=EmployeeStats)
async def employee_stats(
    day: Optional[date] = Query(None, description="Attendance day (default: today)"),
    employee: Employee = Depends(require_permission("employee:stats")),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeService.stats(db, day or local_date(datetime.now(timezone.utc)))


# ── GET /employees/me ───────────────────────────────────────────────
# Declared before /{employee_id} so "me" is not parsed as a UUID.

@router.get("/me", response_model=EmployeeDetail)
async def my_profile(
    employee: Employee = Depends(require_permission("employee:read_own")),
):
    return EmployeeDetail.model_validate(employee)


# ── PUT /employees/me ───────────────────────────────────────────────

@router.put("/me", response_model=EmployeeDetail)
async def update_my_profile(
    body: EmployeeSelfUpdate,
    employee: Employee = Depends(require_permission("employee:update_own")),
    db: AsyncSession = Depends(get_db),
):
    updated = await EmployeeService.update_own_profile(db, employee, body)
    return EmployeeDetail.model_validate(updated)


# ── GET /employees/{id} ─────────────────────────────────────────────

@router.get("/{employee_id}", response_model=EmployeeDetail)
async def get_employee(
    employee_id: uuid.UUID,
    request: Request,
    employee: Employee = Depends(require_permission("employee:read_own")),
    db: AsyncSession = Depends(get_db),
):
    if employee_id != employee.id and not is_allowed(
        request.state.user_role, "employee:read_all",
    ):
        raise ForbiddenException("You can only view your own profile.")
    return EmployeeDetail.model_validate(await EmployeeService.get_employee(db, employee_id))


# ── PUT /employees/{id} ─────────────────────────────────────────────

@router.put("/{employee_id}", response_model=EmployeeDetail)
async def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    employee: Employee = Depends(require_permission("employee:update")),
    db: AsyncSession = Depends(get_db),
):
    updated = await EmployeeService.update_employee(db, employee_id, body, actor_id=employee.id)
    return EmployeeDetail.model_validate(updated)


# ── DELETE /employees/{id} — Deactivate ─────────────────────────────

@router.delete("/{employee_id}", response_model=EmployeeDetail)
async def deactivate_employee(
    employee_id: uuid.UUID,
    employee: Employee = Depends(require_permission("employee:deactivate")),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the employee is marked terminated and can no longer sign in."""
    deactivated = await EmployeeService.deactivate_employee(
        db, employee_id, actor_id=employee.id,
    )
    return EmployeeDetail.model_validate(deactivated)
