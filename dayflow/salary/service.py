"""Salary service layer — versioned salary configuration, breakdowns, payroll runs."""

from __future__ import annotations

import calendar
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.attendance.models import AttendanceDayRecord
from dayflow.attendance.service import month_bounds
from dayflow.common.audit import create_audit_entry
from dayflow.common.constants import (
    AttendanceStatus,
    EmploymentStatus,
    LeaveCategory,
    LeaveStatus,
    PaymentStatus,
)
from dayflow.common.exceptions import (
    NotFoundException,
    StorageConflict,
    ValidationException,
)
from dayflow.common.pagination import PaginationMeta, PaginationParams, paginate
from dayflow.config import settings
from dayflow.core_hr.models import Employee
from dayflow.leave.models import LeaveRequest
from dayflow.salary.engine import PFRates, breakdown_for, build_breakdown, percentages_from
from dayflow.salary.models import Payslip, SalaryConfiguration
from dayflow.salary.schemas import (
    PaymentRequest,
    PayrollMonthStat,
    PayrollStatsResponse,
    SalaryBreakdownOut,
    SalaryConfigurationUpdate,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HALF = Decimal("0.5")
ONE = Decimal("1")

# Attendance statuses and the fraction of a day each contributes to present days
_PRESENT_WEIGHT = {
    AttendanceStatus.present: ONE,
    AttendanceStatus.late: ONE,
    AttendanceStatus.half_day: HALF,
}

_CONFIG_FIELDS = (
    "monthly_wage",
    "basic_pct",
    "hra_pct",
    "standard_allowance_pct",
    "performance_bonus_pct",
    "lta_pct",
    "pf_employee_pct",
    "pf_employer_pct",
    "professional_tax",
    "currency",
)


def _json_safe(values: dict[str, Any]) -> dict[str, Any]:
    return {
        k: str(v) if isinstance(v, (Decimal, date)) else v
        for k, v in values.items()
    }


def working_days(year: int, month: int) -> int:
    """Monday-to-Friday days in the month."""
    _, last = calendar.monthrange(year, month)
    return sum(1 for d in range(1, last + 1) if date(year, month, d).weekday() < 5)


# ═════════════════════════════════════════════════════════════════════
# SalaryService
# ═════════════════════════════════════════════════════════════════════


class SalaryService:
    """Salary configuration reads and versioned writes."""

    @staticmethod
    async def initialize_default(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        monthly_wage: Decimal = ZERO,
        effective_from: Optional[date] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> SalaryConfiguration:
        """First configuration for a new employee, using the configured defaults."""
        config = SalaryConfiguration(
            employee_id=employee_id,
            version=1,
            monthly_wage=monthly_wage,
            basic_pct=settings.DEFAULT_BASIC_PCT,
            hra_pct=settings.DEFAULT_HRA_PCT,
            standard_allowance_pct=settings.DEFAULT_STANDARD_ALLOWANCE_PCT,
            performance_bonus_pct=settings.DEFAULT_PERFORMANCE_BONUS_PCT,
            lta_pct=settings.DEFAULT_LTA_PCT,
            pf_employee_pct=settings.DEFAULT_PF_EMPLOYEE_PCT,
            pf_employer_pct=settings.DEFAULT_PF_EMPLOYER_PCT,
            professional_tax=settings.DEFAULT_PROFESSIONAL_TAX,
            currency=settings.DEFAULT_CURRENCY,
            effective_from=effective_from or date.today(),
            is_current=True,
            updated_by=actor_id,
        )
        if breakdown_for(config).over_budget:
            raise ValidationException(
                {"salary": ["Default percentages exceed the monthly wage."]}
            )
        db.add(config)
        await db.flush()
        logger.info("Default salary configuration created for employee=%s", employee_id)
        return config

    @staticmethod
    async def get_current(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> SalaryConfiguration:
        result = await db.execute(
            select(SalaryConfiguration)
            .where(
                SalaryConfiguration.employee_id == employee_id,
                SalaryConfiguration.is_current.is_(True),
            )
            .execution_options(populate_existing=True)
        )
        config = result.scalars().first()
        if config is None:
            raise NotFoundException("SalaryConfiguration", str(employee_id))
        return config

    @staticmethod
    async def get_history(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Sequence[SalaryConfiguration]:
        result = await db.execute(
            select(SalaryConfiguration)
            .where(SalaryConfiguration.employee_id == employee_id)
            .order_by(SalaryConfiguration.version.desc())
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()

    @staticmethod
    async def get_breakdown(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> SalaryBreakdownOut:
        config = await SalaryService.get_current(db, employee_id)
        return SalaryBreakdownOut.build(config, breakdown_for(config))

    @staticmethod
    async def update_configuration(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: SalaryConfigurationUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> SalaryConfiguration:
        """Supersede the current configuration with a new version.

        The merged structure is run through the engine first; a structure
        whose components exceed the wage is refused.
        """
        current = await SalaryService.get_current(db, employee_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        merged = {name: getattr(current, name) for name in _CONFIG_FIELDS}
        merged.update({k: v for k, v in changes.items() if k in _CONFIG_FIELDS})

        breakdown = build_breakdown(
            merged["monthly_wage"],
            percentages_from(merged),
            PFRates(employee=merged["pf_employee_pct"], employer=merged["pf_employer_pct"]),
            merged["professional_tax"],
            currency=merged["currency"],
        )
        if breakdown.over_budget:
            raise ValidationException(
                {"percentages": [
                    "Basic and basic-derived components exceed the monthly wage."
                ]}
            )

        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(SalaryConfiguration)
            .where(
                SalaryConfiguration.id == current.id,
                SalaryConfiguration.is_current.is_(True),
            )
            .values(is_current=False, superseded_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise StorageConflict("SalaryConfiguration", current.id)

        new_config = SalaryConfiguration(
            employee_id=employee_id,
            version=current.version + 1,
            effective_from=changes.get("effective_from") or date.today(),
            is_current=True,
            updated_by=actor_id,
            **merged,
        )
        try:
            async with db.begin_nested():
                db.add(new_config)
                await db.flush()
        except IntegrityError as exc:
            raise StorageConflict("SalaryConfiguration", current.id) from exc

        await create_audit_entry(
            db,
            action="update",
            entity_type="salary_configuration",
            entity_id=new_config.id,
            actor_id=actor_id,
            old_values=_json_safe(
                {name: getattr(current, name) for name in _CONFIG_FIELDS}
                | {"version": current.version}
            ),
            new_values=_json_safe(merged | {"version": new_config.version}),
        )
        logger.info(
            "Salary configuration for employee=%s moved to version %d",
            employee_id, new_config.version,
        )
        return new_config


# ═════════════════════════════════════════════════════════════════════
# PayrollService
# ═════════════════════════════════════════════════════════════════════


class PayrollService:
    """Monthly payslip generation, listing and payment."""

    # ── Figures ─────────────────────────────────────────────────────

    @staticmethod
    async def _present_days(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
    ) -> Decimal:
        result = await db.execute(
            select(AttendanceDayRecord.status).where(
                AttendanceDayRecord.employee_id == employee_id,
                AttendanceDayRecord.date >= start,
                AttendanceDayRecord.date <= end,
            )
        )
        return sum((_PRESENT_WEIGHT.get(s, ZERO) for s in result.scalars().all()), ZERO)

    @staticmethod
    async def _unpaid_leave_days(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
    ) -> Decimal:
        """Approved unpaid-category leave falling inside [start, end]."""
        result = await db.execute(
            select(LeaveRequest).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.category == LeaveCategory.unpaid,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date <= end,
                LeaveRequest.end_date >= start,
            )
        )
        total = ZERO
        for leave in result.scalars().all():
            if leave.is_half_day:
                total += HALF
                continue
            first = max(leave.start_date, start)
            last = min(leave.end_date, end)
            total += Decimal((last - first).days + 1)
        return total

    # ── Generate ────────────────────────────────────────────────────

    @staticmethod
    async def generate(
        db: AsyncSession,
        year: int,
        month: int,
        *,
        employee_ids: Optional[Sequence[uuid.UUID]] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> tuple[list[Payslip], list[uuid.UUID], int]:
        """Create one payslip per active employee for the month.

        Employees that already have a payslip for the period, or have no
        salary configuration, are skipped. Returns
        ``(generated, skipped_employee_ids, working_days)``.
        """
        start, end = month_bounds(year, month)
        days = working_days(year, month)

        query = select(Employee).where(
            Employee.is_active.is_(True),
            Employee.status == EmploymentStatus.active,
            Employee.join_date <= end,
        )
        if employee_ids:
            query = query.where(Employee.id.in_(employee_ids))
        employees = (await db.execute(query.order_by(Employee.employee_code))).scalars().all()

        existing = set(
            (
                await db.execute(
                    select(Payslip.employee_id).where(
                        Payslip.year == year, Payslip.month == month,
                    )
                )
            ).scalars().all()
        )

        generated: list[Payslip] = []
        skipped: list[uuid.UUID] = []
        for emp in employees:
            if emp.id in existing:
                skipped.append(emp.id)
                continue
            try:
                config = await SalaryService.get_current(db, emp.id)
            except NotFoundException:
                logger.warning("No salary configuration for employee=%s; skipped", emp.id)
                skipped.append(emp.id)
                continue

            breakdown = breakdown_for(config)
            payslip = Payslip(
                employee_id=emp.id,
                salary_configuration_id=config.id,
                year=year,
                month=month,
                breakdown=_json_safe(breakdown.rounded()),
                gross_salary=breakdown.gross_salary,
                total_deductions=breakdown.total_deductions,
                net_salary=breakdown.net_salary,
                working_days=days,
                present_days=await PayrollService._present_days(db, emp.id, start, end),
                unpaid_leave_days=await PayrollService._unpaid_leave_days(
                    db, emp.id, start, end,
                ),
                payment_status=PaymentStatus.pending,
                generated_by=actor_id,
            )
            try:
                async with db.begin_nested():
                    db.add(payslip)
                    await db.flush()
            except IntegrityError:
                # Another run created it between our read and insert
                skipped.append(emp.id)
                continue
            generated.append(payslip)

        await create_audit_entry(
            db,
            action="generate",
            entity_type="payroll",
            entity_id=None,
            actor_id=actor_id,
            new_values={
                "year": year,
                "month": month,
                "generated": len(generated),
                "skipped": len(skipped),
            },
        )
        logger.info(
            "Payroll %04d-%02d: generated=%d skipped=%d",
            year, month, len(generated), len(skipped),
        )
        return generated, skipped, days

    # ── Read ────────────────────────────────────────────────────────

    @staticmethod
    async def get(db: AsyncSession, payslip_id: uuid.UUID) -> Payslip:
        result = await db.execute(
            select(Payslip)
            .where(Payslip.id == payslip_id)
            .execution_options(populate_existing=True)
        )
        payslip = result.scalars().first()
        if payslip is None:
            raise NotFoundException("Payslip", str(payslip_id))
        return payslip

    @staticmethod
    async def list_payslips(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        year: Optional[int] = None,
        month: Optional[int] = None,
        payment_status: Optional[PaymentStatus] = None,
    ) -> tuple[Sequence[Payslip], PaginationMeta]:
        query = select(Payslip).order_by(
            Payslip.year.desc(), Payslip.month.desc(), Payslip.created_at.desc(),
        )
        if employee_id is not None:
            query = query.where(Payslip.employee_id == employee_id)
        if year is not None:
            query = query.where(Payslip.year == year)
        if month is not None:
            query = query.where(Payslip.month == month)
        if payment_status is not None:
            query = query.where(Payslip.payment_status == payment_status)
        return await paginate(db, query, pagination, model=Payslip)

    # ── Pay ─────────────────────────────────────────────────────────

    @staticmethod
    async def pay(
        db: AsyncSession,
        payslip_id: uuid.UUID,
        data: PaymentRequest,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Payslip:
        """Mark a pending payslip as paid. A paid payslip cannot be paid again."""
        result = await db.execute(
            update(Payslip)
            .where(
                Payslip.id == payslip_id,
                Payslip.payment_status == PaymentStatus.pending,
            )
            .values(
                payment_status=PaymentStatus.paid,
                payment_date=data.payment_date or date.today(),
                payment_method=data.payment_method,
                transaction_id=data.transaction_id,
                remarks=data.remarks,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await PayrollService.get(db, payslip_id)
            raise ValidationException({"payment_status": ["Payment already processed."]})

        payslip = await PayrollService.get(db, payslip_id)
        await create_audit_entry(
            db,
            action="pay",
            entity_type="payslip",
            entity_id=payslip.id,
            actor_id=actor_id,
            old_values={"payment_status": PaymentStatus.pending.value},
            new_values=data.model_dump(mode="json") | {"payment_status": PaymentStatus.paid.value},
        )
        return payslip

    # ── Stats ───────────────────────────────────────────────────────

    @staticmethod
    async def stats(db: AsyncSession, year: int) -> PayrollStatsResponse:
        """Per-month totals by payment status plus paid totals for the year."""
        result = await db.execute(
            select(
                Payslip.month,
                Payslip.payment_status,
                func.count(),
                func.coalesce(func.sum(Payslip.gross_salary), 0),
                func.coalesce(func.sum(Payslip.total_deductions), 0),
                func.coalesce(func.sum(Payslip.net_salary), 0),
            )
            .where(Payslip.year == year)
            .group_by(Payslip.month, Payslip.payment_status)
            .order_by(Payslip.month)
        )
        monthly = [
            PayrollMonthStat(
                month=m,
                status=status,
                count=count,
                total_gross=Decimal(str(gross)),
                total_deductions=Decimal(str(deductions)),
                total_net=Decimal(str(net)),
            )
            for m, status, count, gross, deductions, net in result.all()
        ]
        paid = [s for s in monthly if s.status == PaymentStatus.paid]
        return PayrollStatsResponse(
            year=year,
            monthly=monthly,
            paid_count=sum(s.count for s in paid),
            paid_gross=sum((s.total_gross for s in paid), ZERO),
            paid_deductions=sum((s.total_deductions for s in paid), ZERO),
            paid_net=sum((s.total_net for s in paid), ZERO),
        )
