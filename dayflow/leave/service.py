"""Leave service layer — apply / approve / reject / cancel, listings, statistics.

Business logic:
  - Day count: inclusive calendar span, 0.5 for a single-day half-day request
  - Overlap check against the employee's pending and approved requests
  - Balance pre-check at request time for tracked categories
  - Approval debits the ledger and flips the status in one SAVEPOINT;
    either both happen or neither does
  - Cancelling an approved request credits the ledger back
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.attendance.aggregator import local_date
from dayflow.common.audit import create_audit_entry
from dayflow.common.constants import LeaveStatus, LeaveType
from dayflow.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    OverlappingRequest,
    StorageConflict,
    ValidationException,
)
from dayflow.common.filters import apply_filters
from dayflow.common.pagination import PaginationParams, paginate, select_count
from dayflow.core_hr.models import Employee
from dayflow.core_hr.schemas import EmployeeBrief
from dayflow.leave.ledger import LeaveLedger
from dayflow.leave.models import LeaveRequest
from dayflow.leave.rules import (
    category_for,
    check_transition,
    count_days,
    is_tracked,
    ledger_year,
)
from dayflow.leave.schemas import (
    LeaveBalanceResponse,
    LeaveListResponse,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveStatsResponse,
    MyLeavesResponse,
)
from dayflow.notifications.service import NotificationDispatcher

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
_BLOCKING_STATUSES = (LeaveStatus.pending, LeaveStatus.approved)


class LeaveService:
    """Async leave-request operations."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _get_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        result = await db.execute(select(Employee).where(Employee.id == employee_id))
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def get_request(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        leave = result.scalars().first()
        if leave is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave

    @staticmethod
    async def _find_overlap(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
    ) -> Optional[LeaveRequest]:
        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status.in_(_BLOCKING_STATUSES),
                LeaveRequest.start_date <= end,
                LeaveRequest.end_date >= start,
            )
            .order_by(LeaveRequest.start_date)
        )
        return result.scalars().first()

    @staticmethod
    def _to_out(leave: LeaveRequest, employee: Optional[Employee] = None) -> LeaveRequestOut:
        out = LeaveRequestOut.model_validate(leave)
        if employee is not None:
            out.employee = EmployeeBrief.model_validate(employee)
        return out

    # ─────────────────────────────────────────────────────────────────
    # Apply
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def apply(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: LeaveRequestCreate,
    ) -> LeaveRequest:
        """Validate and persist a pending request, then notify HR."""
        employee = await LeaveService._get_employee(db, employee_id)

        total_days = count_days(data.start_date, data.end_date, is_half_day=data.is_half_day)
        category = category_for(data.leave_type)

        conflict = await LeaveService._find_overlap(
            db, employee_id, data.start_date, data.end_date,
        )
        if conflict is not None:
            raise OverlappingRequest(conflict.id)

        # Approval re-checks atomically; this only rejects hopeless requests early
        if is_tracked(category):
            year = ledger_year(data.start_date)
            await LeaveLedger.initialize(db, employee_id, year)
            remaining = await LeaveLedger.remaining(db, employee_id, category, year)
            if remaining < total_days:
                raise ValidationException(
                    {"total_days": [
                        f"Insufficient {category.value} leave balance. "
                        f"Available: {remaining} day(s), requested: {total_days}."
                    ]}
                )

        leave = LeaveRequest(
            employee_id=employee_id,
            leave_type=data.leave_type,
            category=category,
            title=data.title,
            reason=data.reason,
            start_date=data.start_date,
            end_date=data.end_date,
            total_days=total_days,
            is_half_day=data.is_half_day,
            half_day_type=data.half_day_type,
            status=LeaveStatus.pending,
        )
        db.add(leave)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=employee_id,
            new_values=data.model_dump(mode="json") | {"total_days": str(total_days)},
        )
        logger.info(
            "Leave requested: id=%s employee=%s type=%s days=%s",
            leave.id, employee_id, data.leave_type.value, total_days,
        )

        await NotificationDispatcher.leave_requested(db, leave, employee)
        return leave

    # ─────────────────────────────────────────────────────────────────
    # Approve
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve(
        db: AsyncSession,
        request_id: uuid.UUID,
        approver: Employee,
        *,
        admin_comments: Optional[str] = None,
    ) -> LeaveRequest:
        """pending → approved, debiting the ledger in the same unit.

        ``InsufficientBalance`` or a lost race (``StorageConflict``) leaves
        both the request and the balance untouched.
        """
        leave = await LeaveService.get_request(db, request_id)
        check_transition(leave.status, LeaveStatus.approved)

        now = datetime.now(timezone.utc)
        async with db.begin_nested():
            if is_tracked(leave.category):
                await LeaveLedger.initialize(
                    db, leave.employee_id, ledger_year(leave.start_date),
                )
            await LeaveLedger.debit(
                db,
                leave.employee_id,
                leave.category,
                Decimal(leave.total_days),
                ledger_year(leave.start_date),
            )
            result = await db.execute(
                update(LeaveRequest)
                .where(
                    LeaveRequest.id == leave.id,
                    LeaveRequest.status == LeaveStatus.pending,
                )
                .values(
                    status=LeaveStatus.approved,
                    approved_by=approver.id,
                    approved_at=now,
                    admin_comments=admin_comments,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise StorageConflict("LeaveRequest", leave.id)

        leave = await LeaveService.get_request(db, request_id)
        await create_audit_entry(
            db,
            action="approve",
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=approver.id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.approved.value, "admin_comments": admin_comments},
        )
        logger.info("Leave approved: id=%s by=%s", leave.id, approver.id)

        employee = await LeaveService._get_employee(db, leave.employee_id)
        await NotificationDispatcher.leave_decided(
            db, leave, employee, LeaveStatus.approved, approver,
        )
        return leave

    # ─────────────────────────────────────────────────────────────────
    # Reject
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def reject(
        db: AsyncSession,
        request_id: uuid.UUID,
        approver: Employee,
        *,
        admin_comments: Optional[str] = None,
    ) -> LeaveRequest:
        """pending → rejected. The ledger is not touched."""
        leave = await LeaveService.get_request(db, request_id)
        check_transition(leave.status, LeaveStatus.rejected)

        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(LeaveRequest)
            .where(
                LeaveRequest.id == leave.id,
                LeaveRequest.status == LeaveStatus.pending,
            )
            .values(
                status=LeaveStatus.rejected,
                rejected_by=approver.id,
                rejected_at=now,
                admin_comments=admin_comments,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise StorageConflict("LeaveRequest", leave.id)

        leave = await LeaveService.get_request(db, request_id)
        await create_audit_entry(
            db,
            action="reject",
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=approver.id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.rejected.value, "admin_comments": admin_comments},
        )
        logger.info("Leave rejected: id=%s by=%s", leave.id, approver.id)

        employee = await LeaveService._get_employee(db, leave.employee_id)
        await NotificationDispatcher.leave_decided(
            db, leave, employee, LeaveStatus.rejected, approver,
        )
        return leave

    # ─────────────────────────────────────────────────────────────────
    # Cancel
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: Employee,
        *,
        can_cancel_any: bool = False,
        reason: Optional[str] = None,
    ) -> LeaveRequest:
        """pending/approved → cancelled. Approved days go back to the ledger."""
        leave = await LeaveService.get_request(db, request_id)
        if leave.employee_id != actor.id and not can_cancel_any:
            raise ForbiddenException("You can only cancel your own leave requests.")

        previous = leave.status
        check_transition(previous, LeaveStatus.cancelled)

        now = datetime.now(timezone.utc)
        async with db.begin_nested():
            result = await db.execute(
                update(LeaveRequest)
                .where(
                    LeaveRequest.id == leave.id,
                    LeaveRequest.status == previous,
                )
                .values(
                    status=LeaveStatus.cancelled,
                    cancelled_at=now,
                    cancellation_reason=reason,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise StorageConflict("LeaveRequest", leave.id)

            if previous == LeaveStatus.approved:
                await LeaveLedger.credit(
                    db,
                    leave.employee_id,
                    leave.category,
                    Decimal(leave.total_days),
                    ledger_year(leave.start_date),
                )

        leave = await LeaveService.get_request(db, request_id)
        await create_audit_entry(
            db,
            action="cancel",
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=actor.id,
            old_values={"status": previous.value},
            new_values={"status": LeaveStatus.cancelled.value, "reason": reason},
        )
        logger.info(
            "Leave cancelled: id=%s by=%s previous=%s", leave.id, actor.id, previous.value,
        )
        return leave

    # ─────────────────────────────────────────────────────────────────
    # Balances / listings
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> LeaveBalanceResponse:
        await LeaveService._get_employee(db, employee_id)
        await LeaveLedger.initialize(db, employee_id, year)
        ledger = await LeaveLedger.get_balance(db, employee_id, year)
        return LeaveBalanceResponse.from_ledger(employee_id, year, ledger)

    @staticmethod
    async def list_mine(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        year: Optional[int] = None,
        status: Optional[LeaveStatus] = None,
    ) -> MyLeavesResponse:
        """Own requests (newest first) with the balance for *year* (default: this year)."""
        query = apply_filters(
            select(LeaveRequest),
            LeaveRequest,
            {
                "employee_id": employee_id,
                "status": status,
                "start_date__from": date(year, 1, 1) if year else None,
                "start_date__to": date(year, 12, 31) if year else None,
            },
        ).order_by(LeaveRequest.created_at.desc())
        rows = (await db.execute(query)).scalars().all()
        balance_year = year or local_date(datetime.now(timezone.utc)).year
        balance = await LeaveService.get_balance(db, employee_id, balance_year)
        return MyLeavesResponse(
            data=[LeaveService._to_out(r) for r in rows],
            balance=balance,
        )

    @staticmethod
    async def list_all(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
        employee_id: Optional[uuid.UUID] = None,
        leave_type: Optional[LeaveType] = None,
        department: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> LeaveListResponse:
        """All requests for HR with filters, plus the pending count under the same filters."""
        query = apply_filters(
            select(LeaveRequest),
            LeaveRequest,
            {
                "employee_id": employee_id,
                "leave_type": leave_type,
                "start_date__from": from_date,
                "start_date__to": to_date,
            },
        )
        if department:
            query = query.where(
                LeaveRequest.employee_id.in_(
                    select(Employee.id).where(Employee.department == department)
                )
            )

        pending_q = query.where(LeaveRequest.status == LeaveStatus.pending)
        pending_count: int = (await db.execute(select_count(pending_q))).scalar_one()

        if status is not None:
            query = query.where(LeaveRequest.status == status)
        query = query.order_by(LeaveRequest.created_at.desc())
        rows, meta = await paginate(db, query, pagination, model=LeaveRequest)

        employee_ids = {r.employee_id for r in rows}
        employees = {}
        if employee_ids:
            result = await db.execute(select(Employee).where(Employee.id.in_(employee_ids)))
            employees = {e.id: e for e in result.scalars().all()}

        return LeaveListResponse(
            data=[LeaveService._to_out(r, employees.get(r.employee_id)) for r in rows],
            meta=meta,
            pending_count=pending_count,
        )

    # ─────────────────────────────────────────────────────────────────
    # Statistics
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def stats(db: AsyncSession, year: int) -> LeaveStatsResponse:
        """Pending count plus approved days by type and by start month for *year*."""
        pending = (
            await db.execute(
                select(func.count())
                .select_from(LeaveRequest)
                .where(LeaveRequest.status == LeaveStatus.pending)
            )
        ).scalar_one()

        result = await db.execute(
            select(LeaveRequest.leave_type, LeaveRequest.start_date, LeaveRequest.total_days)
            .where(
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date >= date(year, 1, 1),
                LeaveRequest.start_date <= date(year, 12, 31),
            )
        )
        by_type: dict[str, Decimal] = defaultdict(lambda: ZERO)
        by_month: dict[int, Decimal] = defaultdict(lambda: ZERO)
        for leave_type, start, days in result.all():
            by_type[leave_type.value] += Decimal(days)
            by_month[start.month] += Decimal(days)

        return LeaveStatsResponse(
            year=year,
            pending_count=pending,
            approved_days_by_type=dict(by_type),
            approved_days_by_month=dict(sorted(by_month.items())),
        )
