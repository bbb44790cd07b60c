"""Core HR service layer — async CRUD for employees.

Uses:
  - ``paginate()`` from dayflow.common.pagination
  - ``apply_filters / apply_search`` from dayflow.common.filters
  - ``create_audit_entry`` from dayflow.common.audit
  - ``SalaryService.initialize_default`` and ``LeaveLedger.initialize``
    so every new employee starts with a salary structure and balances
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.attendance.aggregator import local_date
from dayflow.attendance.models import AttendanceDayRecord
from dayflow.common.audit import create_audit_entry
from dayflow.common.constants import Department, EmploymentStatus
from dayflow.common.exceptions import (
    ConflictError,
    NotFoundException,
    ValidationException,
)
from dayflow.common.filters import apply_filters, apply_search
from dayflow.common.pagination import PaginationMeta, PaginationParams, paginate
from dayflow.core_hr.models import Employee
from dayflow.core_hr.schemas import (
    EmployeeCreate,
    EmployeeSelfUpdate,
    EmployeeStats,
    EmployeeUpdate,
)
from dayflow.leave.ledger import LeaveLedger
from dayflow.salary.service import SalaryService

logger = logging.getLogger(__name__)

_SEARCH_COLUMNS = ["first_name", "last_name", "email", "employee_code", "designation"]


def _plain(value: Any) -> Any:
    if hasattr(value, "value"):
        return value.value
    if isinstance(value, (uuid.UUID, date)):
        return str(value)
    return value


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Async CRUD operations for employees."""

    # ── List (paginated, searchable, filterable) ────────────────────

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        department: Optional[Department] = None,
        status: Optional[EmploymentStatus] = None,
        is_active: Optional[bool] = None,
    ) -> tuple[Sequence[Employee], PaginationMeta]:
        query = apply_filters(
            select(Employee),
            Employee,
            {
                "department": department.value if department else None,
                "status": status,
                "is_active": is_active,
            },
        )
        query = apply_search(query, Employee, search, _SEARCH_COLUMNS)
        query = query.order_by(Employee.first_name, Employee.last_name)
        return await paginate(db, query, pagination, model=Employee)

    # ── Get single ──────────────────────────────────────────────────

    @staticmethod
    async def get_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        result = await db.execute(select(Employee).where(Employee.id == employee_id))
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def create_employee(
        db: AsyncSession,
        data: EmployeeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Create an employee with an initial salary structure and leave balances."""
        for field, value in (("email", data.email), ("employee_code", data.employee_code)):
            taken = await db.execute(
                select(Employee.id).where(getattr(Employee, field) == value)
            )
            if taken.first() is not None:
                raise ConflictError(field, value)

        if data.reporting_manager_id is not None:
            await EmployeeService.get_employee(db, data.reporting_manager_id)

        values = data.model_dump(exclude={"monthly_wage"})
        values["department"] = data.department.value
        employee = Employee(**values)

        try:
            async with db.begin_nested():
                db.add(employee)
                await db.flush()
        except IntegrityError as exc:
            err = str(exc.orig)
            if "email" in err:
                raise ConflictError("email", data.email) from exc
            raise ConflictError("employee_code", data.employee_code) from exc

        await SalaryService.initialize_default(
            db,
            employee.id,
            monthly_wage=data.monthly_wage,
            effective_from=data.join_date,
            actor_id=actor_id,
        )

        this_year = local_date(datetime.now(timezone.utc)).year
        for year in sorted({data.join_date.year, this_year}):
            if year <= this_year:
                await LeaveLedger.initialize(db, employee.id, year)

        await create_audit_entry(
            db,
            action="create",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        logger.info(
            "Employee created: id=%s code=%s role=%s",
            employee.id, employee.employee_code, employee.role.value,
        )
        return employee

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: EmployeeUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Partial update; only fields present in the payload change."""
        employee = await EmployeeService.get_employee(db, employee_id)

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return employee

        if changes.get("reporting_manager_id") is not None:
            if changes["reporting_manager_id"] == employee.id:
                raise ValidationException(
                    {"reporting_manager_id": ["An employee cannot report to themselves."]}
                )
            await EmployeeService.get_employee(db, changes["reporting_manager_id"])

        if changes.get("department") is not None:
            changes["department"] = changes["department"].value

        old_values: dict[str, Any] = {}
        for field, value in changes.items():
            old_values[field] = _plain(getattr(employee, field, None))
            setattr(employee, field, value)

        employee.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        logger.info("Employee updated: id=%s fields=%s", employee.id, sorted(changes))
        return employee

    @staticmethod
    async def update_own_profile(
        db: AsyncSession,
        employee: Employee,
        data: EmployeeSelfUpdate,
    ) -> Employee:
        """Self-service edit limited to the personal fields of ``EmployeeSelfUpdate``."""
        return await EmployeeService.update_employee(
            db,
            employee.id,
            EmployeeUpdate(**data.model_dump(exclude_unset=True)),
            actor_id=employee.id,
        )

    # ── Deactivate ──────────────────────────────────────────────────

    @staticmethod
    async def deactivate_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Soft delete: mark terminated and inactive. The row and its history stay.

        An inactive employee fails authentication on the next request and
        drops out of rosters, payroll runs and scans.
        """
        if employee_id == actor_id:
            raise ValidationException(
                {"employee_id": ["You cannot deactivate your own account."]}
            )
        employee = await EmployeeService.get_employee(db, employee_id)
        if not employee.is_active and employee.status == EmploymentStatus.terminated:
            return employee

        old_values = {"status": employee.status.value, "is_active": employee.is_active}
        employee.status = EmploymentStatus.terminated
        employee.is_active = False
        employee.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="deactivate",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values={"status": EmploymentStatus.terminated.value, "is_active": False},
        )
        logger.info("Employee deactivated: id=%s by=%s", employee.id, actor_id)
        return employee

    # ── Statistics ──────────────────────────────────────────────────

    @staticmethod
    async def stats(db: AsyncSession, day: date) -> EmployeeStats:
        """Headcount totals, active breakdowns and *day*'s attendance counts."""
        total = (
            await db.execute(select(func.count()).select_from(Employee))
        ).scalar_one()

        by_status_rows = await db.execute(
            select(Employee.status, func.count()).group_by(Employee.status)
        )
        by_status = {status.value: count for status, count in by_status_rows.all()}

        active_filter = (
            Employee.is_active.is_(True),
            Employee.status == EmploymentStatus.active,
        )
        by_department_rows = await db.execute(
            select(Employee.department, func.count())
            .where(*active_filter)
            .group_by(Employee.department)
        )
        by_department = dict(sorted(by_department_rows.all()))
        active = sum(by_department.values())

        attendance_rows = await db.execute(
            select(AttendanceDayRecord.status, func.count())
            .join(Employee, Employee.id == AttendanceDayRecord.employee_id)
            .where(AttendanceDayRecord.date == day, *active_filter)
            .group_by(AttendanceDayRecord.status)
        )
        attendance_today = {status.value: count for status, count in attendance_rows.all()}
        attendance_today["not_checked_in"] = active - sum(attendance_today.values())

        return EmployeeStats(
            day=day,
            total=total,
            active=active,
            by_department=by_department,
            by_status=by_status,
            attendance_today=attendance_today,
        )
