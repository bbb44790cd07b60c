"""Salary router — salary structure, breakdowns, payroll runs and payslips.

Routes:
    /salary/me                      — Own breakdown
    /salary/{employee_id}           — Breakdown for any employee (read_all)
    /salary/{employee_id}/history   — All configuration versions (read_all)
    /salary/{employee_id}           — PUT: new configuration version (admin)
    /payroll/generate               — Generate payslips for a month
    /payroll/my                     — Own payslips
    /payroll                        — All payslips (filters)
    /payroll/stats                  — Yearly totals
    /payroll/{payslip_id}           — One payslip (owner or read_all)
    /payroll/{payslip_id}/pay       — Mark as paid
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.auth.dependencies import is_allowed, require_permission
from dayflow.common.constants import PaymentStatus
from dayflow.common.exceptions import ForbiddenException
from dayflow.common.pagination import PaginationParams
from dayflow.core_hr.models import Employee
from dayflow.database import get_db
from dayflow.salary.schemas import (
    PaymentRequest,
    PayrollGenerateRequest,
    PayrollRunResult,
    PayrollStatsResponse,
    PayslipOut,
    SalaryBreakdownOut,
    SalaryConfigurationOut,
    SalaryConfigurationUpdate,
)
from dayflow.salary.service import PayrollService, SalaryService

salary_router = APIRouter(prefix="", tags=["salary"])
payroll_router = APIRouter(prefix="", tags=["payroll"])


# ═════════════════════════════════════════════════════════════════════
# Salary
# ═════════════════════════════════════════════════════════════════════


@salary_router.get("/me", response_model=SalaryBreakdownOut)
async def my_salary(
    employee: Employee = Depends(require_permission("salary:read_own")),
    db: AsyncSession = Depends(get_db),
):
    return await SalaryService.get_breakdown(db, employee.id)


@salary_router.get("/{employee_id}", response_model=SalaryBreakdownOut)
async def employee_salary(
    employee_id: uuid.UUID,
    employee: Employee = Depends(require_permission("salary:read_all")),
    db: AsyncSession = Depends(get_db),
):
    return await SalaryService.get_breakdown(db, employee_id)


@salary_router.get("/{employee_id}/history", response_model=list[SalaryConfigurationOut])
async def salary_history(
    employee_id: uuid.UUID,
    employee: Employee = Depends(require_permission("salary:read_all")),
    db: AsyncSession = Depends(get_db),
):
    configs = await SalaryService.get_history(db, employee_id)
    return [SalaryConfigurationOut.model_validate(c) for c in configs]


@salary_router.put("/{employee_id}", response_model=SalaryBreakdownOut)
async def update_salary(
    employee_id: uuid.UUID,
    body: SalaryConfigurationUpdate,
    employee: Employee = Depends(require_permission("salary:update")),
    db: AsyncSession = Depends(get_db),
):
    """Write a new configuration version and return its breakdown."""
    await SalaryService.update_configuration(db, employee_id, body, actor_id=employee.id)
    return await SalaryService.get_breakdown(db, employee_id)


# ═════════════════════════════════════════════════════════════════════
# Payroll
# ═════════════════════════════════════════════════════════════════════


@payroll_router.post("/generate", response_model=PayrollRunResult, status_code=201)
async def generate_payroll(
    body: PayrollGenerateRequest,
    employee: Employee = Depends(require_permission("payroll:generate")),
    db: AsyncSession = Depends(get_db),
):
    generated, skipped, days = await PayrollService.generate(
        db, body.year, body.month, employee_ids=body.employee_ids, actor_id=employee.id,
    )
    return PayrollRunResult(
        year=body.year,
        month=body.month,
        working_days=days,
        generated=[PayslipOut.model_validate(p) for p in generated],
        skipped=skipped,
    )


@payroll_router.get("/my")
async def my_payslips(
    year: Optional[int] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(require_permission("payroll:read_own")),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await PayrollService.list_payslips(
        db, pagination, employee_id=employee.id, year=year,
    )
    return {
        "data": [PayslipOut.model_validate(p).model_dump(mode="json") for p in rows],
        "meta": meta.model_dump(),
    }


@payroll_router.get("/stats", response_model=PayrollStatsResponse)
async def payroll_stats(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(require_permission("payroll:read_all")),
    db: AsyncSession = Depends(get_db),
):
    return await PayrollService.stats(db, year or date.today().year)


@payroll_router.get("")
async def list_payslips(
    employee_id: Optional[uuid.UUID] = Query(None),
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    payment_status: Optional[PaymentStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(require_permission("payroll:read_all")),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await PayrollService.list_payslips(
        db,
        pagination,
        employee_id=employee_id,
        year=year,
        month=month,
        payment_status=payment_status,
    )
    return {
        "data": [PayslipOut.model_validate(p).model_dump(mode="json") for p in rows],
        "meta": meta.model_dump(),
    }


@payroll_router.get("/{payslip_id}", response_model=PayslipOut)
async def get_payslip(
    payslip_id: uuid.UUID,
    request: Request,
    employee: Employee = Depends(require_permission("payroll:read_own")),
    db: AsyncSession = Depends(get_db),
):
    payslip = await PayrollService.get(db, payslip_id)
    if payslip.employee_id != employee.id and not is_allowed(
        request.state.user_role, "payroll:read_all",
    ):
        raise ForbiddenException("You can only view your own payslips.")
    return PayslipOut.model_validate(payslip)


@payroll_router.post("/{payslip_id}/pay", response_model=PayslipOut)
async def pay_payslip(
    payslip_id: uuid.UUID,
    body: PaymentRequest,
    employee: Employee = Depends(require_permission("payroll:pay")),
    db: AsyncSession = Depends(get_db),
):
    payslip = await PayrollService.pay(db, payslip_id, body, actor_id=employee.id)
    return PayslipOut.model_validate(payslip)
