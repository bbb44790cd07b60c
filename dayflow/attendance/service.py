"""Attendance service layer — check in/out, manual marking, summaries, regularization.

Business logic:
  - One day record per (employee, local date); duplicates are refused by
    a unique constraint as well as by the read-before-write check
  - Late detection against the configured local cutoff hour
  - Worked and overtime hours computed at check-out (or on manual marking)
  - Read models for self (today, month), HR (roster, week, month summary)
  - Regularization workflow (request → approve/reject)
"""

from __future__ import annotations

import calendar
import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.attendance.aggregator import (
    as_utc,
    local_date,
    status_for_check_in,
    summarize,
    worked_hours,
)
from dayflow.attendance.models import AttendanceDayRecord
from dayflow.attendance.schemas import (
    AttendanceRecordResponse,
    AttendanceSummary,
    EmployeeBrief,
    EmployeeMonthSummary,
    MarkAttendanceRequest,
    MonthSummaryResponse,
    MyMonthResponse,
    RegularizationDecision,
    RegularizationRequest,
    RosterItem,
    RosterResponse,
    RosterStats,
    TodayStatusResponse,
    WeekDayCell,
    WeekResponse,
    WeekRow,
)
from dayflow.common.audit import create_audit_entry
from dayflow.common.constants import (
    AttendanceStatus,
    CheckMethod,
    CurrentAttendanceStatus,
    EmploymentStatus,
    RegularizationStatus,
)
from dayflow.common.exceptions import (
    AlreadyCheckedIn,
    AlreadyCheckedOut,
    NotCheckedIn,
    NotFoundException,
    ValidationException,
)
from dayflow.common.pagination import PaginationMeta, PaginationParams, paginate
from dayflow.core_hr.models import Employee

logger = logging.getLogger(__name__)

# ── Constants ───────────────────────────────────────────────────────

MAX_DATE_RANGE_DAYS = 366
NOT_CHECKED_IN = CurrentAttendanceStatus.not_checked_in.value

_CURRENT_STATUS = {
    AttendanceStatus.present: CurrentAttendanceStatus.present,
    AttendanceStatus.late: CurrentAttendanceStatus.late,
    AttendanceStatus.half_day: CurrentAttendanceStatus.half_day,
    AttendanceStatus.leave: CurrentAttendanceStatus.leave,
    AttendanceStatus.absent: CurrentAttendanceStatus.absent,
    AttendanceStatus.holiday: CurrentAttendanceStatus.absent,
    AttendanceStatus.weekend: CurrentAttendanceStatus.absent,
}

# Days HR marked as non-working; the check-in flow does not overwrite them
_NON_WORKING = frozenset(
    {AttendanceStatus.leave, AttendanceStatus.holiday, AttendanceStatus.weekend}
)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    if not 1 <= month <= 12:
        raise ValidationException({"month": ["Month must be between 1 and 12."]})
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


# ═════════════════════════════════════════════════════════════════════
# AttendanceService
# ═════════════════════════════════════════════════════════════════════


class AttendanceService:
    """Async attendance operations: check, mark, read, regularize."""

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _get_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        result = await db.execute(select(Employee).where(Employee.id == employee_id))
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def _get_record(
        db: AsyncSession,
        employee_id: uuid.UUID,
        day: date,
    ) -> Optional[AttendanceDayRecord]:
        result = await db.execute(
            select(AttendanceDayRecord).where(
                AttendanceDayRecord.employee_id == employee_id,
                AttendanceDayRecord.date == day,
            )
        )
        return result.scalars().first()

    @staticmethod
    async def _records_between(
        db: AsyncSession,
        from_date: date,
        to_date: date,
        employee_ids: Optional[Sequence[uuid.UUID]] = None,
    ) -> Sequence[AttendanceDayRecord]:
        query = select(AttendanceDayRecord).where(
            AttendanceDayRecord.date >= from_date,
            AttendanceDayRecord.date <= to_date,
        )
        if employee_ids is not None:
            query = query.where(AttendanceDayRecord.employee_id.in_(employee_ids))
        result = await db.execute(query.order_by(AttendanceDayRecord.date))
        return result.scalars().all()

    @staticmethod
    async def _active_employees(
        db: AsyncSession,
        department: Optional[str] = None,
    ) -> Sequence[Employee]:
        query = select(Employee).where(
            Employee.is_active.is_(True),
            Employee.status == EmploymentStatus.active,
        )
        if department:
            query = query.where(Employee.department == department)
        result = await db.execute(query.order_by(Employee.first_name, Employee.last_name))
        return result.scalars().all()

    @staticmethod
    def _recompute_hours(record: AttendanceDayRecord) -> None:
        if record.check_in_at and record.check_out_at:
            total, overtime = worked_hours(
                record.check_in_at, record.check_out_at, record.break_minutes or 0,
            )
            record.total_hours = total
            record.overtime_hours = overtime

    @staticmethod
    def _validate_date_range(from_date: date, to_date: date) -> None:
        if from_date > to_date:
            raise ValidationException(
                {"date_range": ["from_date must be before or equal to to_date."]}
            )
        if (to_date - from_date).days > MAX_DATE_RANGE_DAYS:
            raise ValidationException(
                {"date_range": [f"Date range cannot exceed {MAX_DATE_RANGE_DAYS} days."]}
            )

    # ── Check in ────────────────────────────────────────────────────

    @staticmethod
    async def check_in(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        timestamp: Optional[datetime] = None,
        location: str = "Office",
        method: CheckMethod = CheckMethod.web,
    ) -> AttendanceDayRecord:
        """Open today's record. A second check-in on the same local date fails,
        as does a check-in on a day HR marked leave, holiday or weekend.
        """
        now = as_utc(timestamp) if timestamp else datetime.now(timezone.utc)
        day = local_date(now)
        employee = await AttendanceService._get_employee(db, employee_id)

        record = await AttendanceService._get_record(db, employee_id, day)
        if record is not None and record.check_in_at is not None:
            raise AlreadyCheckedIn(day)
        if record is not None and record.status in _NON_WORKING:
            logger.info(
                "Check-in refused on marked day: employee=%s date=%s status=%s",
                employee_id, day, record.status.value,
            )
            raise ValidationException(
                {"date": [
                    f"{day} is marked as {record.status.value}; "
                    "ask HR to update the record instead."
                ]}
            )

        status = status_for_check_in(now)

        if record is None:
            record = AttendanceDayRecord(
                employee_id=employee_id,
                date=day,
                check_in_at=now,
                check_in_location=location,
                check_in_method=method,
                status=status,
            )
            try:
                async with db.begin_nested():
                    db.add(record)
                    await db.flush()
            except IntegrityError:
                logger.info(
                    "Concurrent check-in rejected: employee=%s date=%s",
                    employee_id, day,
                )
                raise AlreadyCheckedIn(day)
        else:
            # Placeholder row (e.g. from a regularization request) without a check-in
            record.check_in_at = now
            record.check_in_location = location
            record.check_in_method = method
            record.status = status
            record.updated_at = datetime.now(timezone.utc)

        employee.current_attendance_status = _CURRENT_STATUS[status]
        await db.flush()

        await create_audit_entry(
            db,
            action="check_in",
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=employee_id,
            new_values={
                "date": day.isoformat(),
                "timestamp": now.isoformat(),
                "status": status.value,
                "method": method.value,
            },
        )
        logger.info("Check-in employee=%s date=%s status=%s", employee_id, day, status.value)
        return record

    # ── Check out ───────────────────────────────────────────────────

    @staticmethod
    async def check_out(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        timestamp: Optional[datetime] = None,
        location: str = "Office",
        method: CheckMethod = CheckMethod.web,
        break_minutes: int = 0,
    ) -> AttendanceDayRecord:
        """Close today's record and compute worked/overtime hours."""
        now = as_utc(timestamp) if timestamp else datetime.now(timezone.utc)
        day = local_date(now)

        record = await AttendanceService._get_record(db, employee_id, day)
        if record is None or record.check_in_at is None:
            raise NotCheckedIn(day)
        if record.check_out_at is not None:
            raise AlreadyCheckedOut(day)

        record.check_out_at = now
        record.check_out_location = location
        record.check_out_method = method
        record.break_minutes = break_minutes
        AttendanceService._recompute_hours(record)
        record.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="check_out",
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=employee_id,
            new_values={
                "date": day.isoformat(),
                "timestamp": now.isoformat(),
                "total_hours": str(record.total_hours),
                "overtime_hours": str(record.overtime_hours),
            },
        )
        logger.info(
            "Check-out employee=%s date=%s total_hours=%s",
            employee_id, day, record.total_hours,
        )
        return record

    # ── Manual marking ──────────────────────────────────────────────

    @staticmethod
    async def mark(
        db: AsyncSession,
        data: MarkAttendanceRequest,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> AttendanceDayRecord:
        """Set a day's status directly, optionally with times. Creates the row if needed."""
        await AttendanceService._get_employee(db, data.employee_id)

        record = await AttendanceService._get_record(db, data.employee_id, data.date)
        old_status = record.status.value if record else None
        if record is None:
            record = AttendanceDayRecord(employee_id=data.employee_id, date=data.date)
            db.add(record)

        record.status = data.status
        if data.check_in is not None:
            record.check_in_at = as_utc(data.check_in)
            record.check_in_method = CheckMethod.manual
        if data.check_out is not None:
            record.check_out_at = as_utc(data.check_out)
            record.check_out_method = CheckMethod.manual
        record.break_minutes = data.break_minutes
        record.note = data.note
        record.marked_by = actor_id
        AttendanceService._recompute_hours(record)
        record.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="mark",
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=actor_id,
            old_values={"status": old_status} if old_status else None,
            new_values=data.model_dump(mode="json"),
        )
        return record

    # ── Summaries ───────────────────────────────────────────────────

    @staticmethod
    async def summarize(
        db: AsyncSession,
        employee_id: uuid.UUID,
        from_date: date,
        to_date: date,
    ) -> AttendanceSummary:
        AttendanceService._validate_date_range(from_date, to_date)
        records = await AttendanceService._records_between(
            db, from_date, to_date, [employee_id],
        )
        return AttendanceSummary.from_aggregate(summarize(records))

    @staticmethod
    async def list_records(
        db: AsyncSession,
        employee_id: uuid.UUID,
        from_date: date,
        to_date: date,
    ) -> list[AttendanceRecordResponse]:
        AttendanceService._validate_date_range(from_date, to_date)
        records = await AttendanceService._records_between(
            db, from_date, to_date, [employee_id],
        )
        return [AttendanceRecordResponse.model_validate(r) for r in records]

    @staticmethod
    async def get_my_month(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        month: int,
    ) -> MyMonthResponse:
        start, end = month_bounds(year, month)
        records = await AttendanceService._records_between(db, start, end, [employee_id])
        return MyMonthResponse(
            year=year,
            month=month,
            records=[AttendanceRecordResponse.model_validate(r) for r in records],
            summary=AttendanceSummary.from_aggregate(summarize(records)),
        )

    @staticmethod
    async def get_today(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        now: Optional[datetime] = None,
    ) -> TodayStatusResponse:
        today = local_date(now or datetime.now(timezone.utc))
        record = await AttendanceService._get_record(db, employee_id, today)
        if record is None:
            return TodayStatusResponse(
                date=today, checked_in=False, checked_out=False, status=NOT_CHECKED_IN,
            )
        return TodayStatusResponse(
            date=today,
            checked_in=record.check_in_at is not None,
            checked_out=record.check_out_at is not None,
            status=record.status.value,
            record=AttendanceRecordResponse.model_validate(record),
        )

    # ── HR views ────────────────────────────────────────────────────

    @staticmethod
    async def get_roster(
        db: AsyncSession,
        day: date,
        *,
        department: Optional[str] = None,
    ) -> RosterResponse:
        """Every active employee with the day's record, or ``not_checked_in``."""
        employees = await AttendanceService._active_employees(db, department)
        records = await AttendanceService._records_between(
            db, day, day, [e.id for e in employees],
        )
        by_employee = {r.employee_id: r for r in records}

        stats = RosterStats(total_employees=len(employees))
        items: list[RosterItem] = []
        for emp in employees:
            record = by_employee.get(emp.id)
            status = record.status.value if record else NOT_CHECKED_IN
            if hasattr(stats, status):
                setattr(stats, status, getattr(stats, status) + 1)
            items.append(
                RosterItem(
                    employee=EmployeeBrief.model_validate(emp),
                    status=status,
                    check_in_at=record.check_in_at if record else None,
                    check_out_at=record.check_out_at if record else None,
                    total_hours=record.total_hours if record else None,
                )
            )
        return RosterResponse(date=day, data=items, stats=stats)

    @staticmethod
    async def get_week(
        db: AsyncSession,
        anchor: date,
        *,
        department: Optional[str] = None,
    ) -> WeekResponse:
        """Monday-to-Sunday grid for the week containing *anchor*."""
        week_start = anchor - timedelta(days=anchor.weekday())
        week_end = week_start + timedelta(days=6)
        days = [week_start + timedelta(days=i) for i in range(7)]

        employees = await AttendanceService._active_employees(db, department)
        records = await AttendanceService._records_between(
            db, week_start, week_end, [e.id for e in employees],
        )
        cells = {(r.employee_id, r.date): r for r in records}

        rows: list[WeekRow] = []
        for emp in employees:
            row_days: dict[date, WeekDayCell] = {}
            for d in days:
                record = cells.get((emp.id, d))
                row_days[d] = WeekDayCell(
                    status=record.status.value if record else NOT_CHECKED_IN,
                    check_in_at=record.check_in_at if record else None,
                    check_out_at=record.check_out_at if record else None,
                    total_hours=record.total_hours if record else None,
                )
            rows.append(WeekRow(employee=EmployeeBrief.model_validate(emp), days=row_days))

        return WeekResponse(week_start=week_start, week_end=week_end, days=days, data=rows)

    @staticmethod
    async def get_month_summary(
        db: AsyncSession,
        year: int,
        month: int,
        *,
        department: Optional[str] = None,
    ) -> MonthSummaryResponse:
        """Per-employee month summaries plus organisation-wide totals."""
        start, end = month_bounds(year, month)
        employees = await AttendanceService._active_employees(db, department)
        records = await AttendanceService._records_between(
            db, start, end, [e.id for e in employees],
        )

        grouped: dict[uuid.UUID, list[AttendanceDayRecord]] = {}
        for r in records:
            grouped.setdefault(r.employee_id, []).append(r)

        data = [
            EmployeeMonthSummary(
                employee=EmployeeBrief.model_validate(emp),
                summary=AttendanceSummary.from_aggregate(
                    summarize(grouped.get(emp.id, []))
                ),
            )
            for emp in employees
        ]
        return MonthSummaryResponse(
            year=year,
            month=month,
            data=data,
            stats=AttendanceSummary.from_aggregate(summarize(records)),
        )

    # ── Regularization: request ─────────────────────────────────────

    @staticmethod
    async def request_regularization(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: RegularizationRequest,
        *,
        now: Optional[datetime] = None,
    ) -> AttendanceDayRecord:
        """Ask HR to correct a day's times. Creates an ``absent`` row if none exists."""
        now = now or datetime.now(timezone.utc)
        if data.date > local_date(now):
            raise ValidationException({"date": ["Cannot regularize a future date."]})

        record = await AttendanceService._get_record(db, employee_id, data.date)
        if record is None:
            record = AttendanceDayRecord(
                employee_id=employee_id,
                date=data.date,
                status=AttendanceStatus.absent,
            )
            db.add(record)

        record.is_regularized = False
        record.regularization_status = RegularizationStatus.pending
        record.regularization_reason = data.reason
        record.requested_check_in = as_utc(data.check_in)
        record.requested_check_out = as_utc(data.check_out)
        record.regularization_requested_at = now
        record.regularization_reviewed_by = None
        record.regularization_reviewed_at = None
        record.regularization_comments = None
        await db.flush()

        await create_audit_entry(
            db,
            action="regularization_request",
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=employee_id,
            new_values=data.model_dump(mode="json"),
        )
        return record

    # ── Regularization: decide ──────────────────────────────────────

    @staticmethod
    async def decide_regularization(
        db: AsyncSession,
        record_id: uuid.UUID,
        decision: RegularizationDecision,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> AttendanceDayRecord:
        """Approve (apply requested times, mark present) or reject a pending request."""
        result = await db.execute(
            select(AttendanceDayRecord).where(AttendanceDayRecord.id == record_id)
        )
        record = result.scalars().first()
        if record is None:
            raise NotFoundException("AttendanceRecord", str(record_id))
        if record.regularization_status != RegularizationStatus.pending:
            raise ValidationException(
                {"regularization": ["No pending regularization request for this record."]}
            )

        now = datetime.now(timezone.utc)
        if decision.action == "approve":
            if record.requested_check_in is not None:
                record.check_in_at = record.requested_check_in
                record.check_in_method = CheckMethod.manual
            if record.requested_check_out is not None:
                record.check_out_at = record.requested_check_out
                record.check_out_method = CheckMethod.manual
            AttendanceService._recompute_hours(record)
            record.status = AttendanceStatus.present
            record.is_regularized = True
            record.regularization_status = RegularizationStatus.approved
        else:
            record.regularization_status = RegularizationStatus.rejected

        record.regularization_reviewed_by = actor_id
        record.regularization_reviewed_at = now
        record.regularization_comments = decision.comments
        record.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action=f"regularization_{decision.action}",
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=actor_id,
            new_values={
                "regularization_status": record.regularization_status.value,
                "comments": decision.comments,
            },
        )
        return record

    @staticmethod
    async def list_pending_regularizations(
        db: AsyncSession,
        pagination: PaginationParams,
    ) -> tuple[list[AttendanceRecordResponse], PaginationMeta]:
        query = (
            select(AttendanceDayRecord)
            .where(AttendanceDayRecord.regularization_status == RegularizationStatus.pending)
            .order_by(AttendanceDayRecord.regularization_requested_at.desc())
        )
        rows, meta = await paginate(db, query, pagination, model=AttendanceDayRecord)
        return [AttendanceRecordResponse.model_validate(r) for r in rows], meta
