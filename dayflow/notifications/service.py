"""Notification service — inbox CRUD and the event dispatcher.

``NotificationDispatcher`` is the single entry point other modules use to
announce domain events (leave requested/decided, missed checkout,
birthday, anniversary). Delivery writes inbox rows inside a SAVEPOINT:
a delivery failure is logged and rolled back to the savepoint, and never
aborts the caller's transaction.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.common.constants import (
    EmploymentStatus,
    LeaveStatus,
    NotificationType,
    UserRole,
)
from dayflow.common.exceptions import ForbiddenException, NotFoundException
from dayflow.common.pagination import PaginationParams, build_meta, select_count
from dayflow.core_hr.models import Employee
from dayflow.notifications.models import Notification
from dayflow.notifications.schemas import (
    NotificationListMeta,
    NotificationListResponse,
    NotificationResponse,
)

logger = logging.getLogger(__name__)


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
    ) -> NotificationListResponse:
        """Return paginated notifications for an employee, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == employee_id)
            .order_by(Notification.created_at.desc())
        )

        if is_read is not None:
            query = query.where(Notification.is_read == is_read)
        if notification_type is not None:
            query = query.where(Notification.type == notification_type)

        total: int = (await db.execute(select_count(query))).scalar_one()
        rows = (
            await db.execute(
                query.offset(pagination.offset).limit(pagination.page_size)
            )
        ).scalars().all()

        # Unread count is always unfiltered (badge)
        unread = await NotificationService.get_unread_count(db, employee_id)

        meta = build_meta(pagination, total)
        return NotificationListResponse(
            data=[NotificationResponse.model_validate(n) for n in rows],
            meta=NotificationListMeta(**meta.model_dump(), unread=unread),
        )

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Notification:
        """Mark a single notification as read. Verifies ownership."""
        result = await db.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        notification = result.scalars().first()

        if notification is None:
            raise NotFoundException("Notification", notification_id)

        if notification.recipient_id != employee_id:
            raise ForbiddenException("You can only mark your own notifications as read.")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> int:
        """Bulk-mark all unread notifications as read. Returns count updated."""
        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def get_unread_count(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> int:
        """Return the number of unread notifications for an employee."""
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()


# ── Event dispatcher ────────────────────────────────────────────────


async def _deliver(
    db: AsyncSession,
    event: str,
    recipient_ids: Iterable[uuid.UUID],
    *,
    type: NotificationType,
    title: str,
    message: str,
    action_url: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
) -> int:
    """Write one inbox row per recipient. Returns the number delivered (0 on failure)."""
    recipients = list(dict.fromkeys(recipient_ids))
    if not recipients:
        logger.warning("No recipients for notification event=%s", event)
        return 0

    try:
        async with db.begin_nested():
            for recipient_id in recipients:
                db.add(
                    Notification(
                        recipient_id=recipient_id,
                        event=event,
                        type=type,
                        title=title,
                        message=message,
                        action_url=action_url,
                        entity_type=entity_type,
                        entity_id=entity_id,
                    )
                )
            await db.flush()
    except Exception:
        logger.exception(
            "Notification delivery failed: event=%s recipients=%d",
            event, len(recipients),
        )
        return 0

    logger.info("Notification event=%s delivered to %d recipient(s)", event, len(recipients))
    return len(recipients)


class NotificationDispatcher:
    """Domain events → inbox notifications. Never raises."""

    @staticmethod
    async def _hr_recipients(db: AsyncSession) -> list[uuid.UUID]:
        result = await db.execute(
            select(Employee.id).where(
                Employee.role.in_([UserRole.hr, UserRole.admin]),
                Employee.is_active.is_(True),
                Employee.status == EmploymentStatus.active,
            )
        )
        return list(result.scalars().all())

    @staticmethod
    async def leave_requested(db: AsyncSession, leave, employee: Employee) -> int:
        """Tell HR that *employee* filed a leave request."""
        try:
            recipients = await NotificationDispatcher._hr_recipients(db)
        except Exception:
            logger.exception("Could not resolve HR recipients for leave %s", leave.id)
            return 0
        recipients = [r for r in recipients if r != employee.id]
        return await _deliver(
            db,
            "leave_requested",
            recipients,
            type=NotificationType.action_required,
            title=f"New Leave Request from {employee.full_name}",
            message=(
                f"{employee.full_name} requested {leave.leave_type.value} leave "
                f"from {leave.start_date} to {leave.end_date} "
                f"({leave.total_days} day(s)). Reason: {leave.reason}"
            ),
            action_url=f"/leave/requests/{leave.id}",
            entity_type="leave_request",
            entity_id=leave.id,
        )

    @staticmethod
    async def leave_decided(
        db: AsyncSession,
        leave,
        employee: Employee,
        status: LeaveStatus,
        approver: Optional[Employee] = None,
    ) -> int:
        """Tell *employee* their leave request was approved or rejected."""
        approved = status == LeaveStatus.approved
        by = f" by {approver.full_name}" if approver is not None else ""
        message = (
            f"Your {leave.leave_type.value} leave from {leave.start_date} to "
            f"{leave.end_date} has been {status.value}{by}."
        )
        if leave.admin_comments:
            message += f" Comments: {leave.admin_comments}"
        return await _deliver(
            db,
            "leave_decided",
            [employee.id],
            type=NotificationType.approval if approved else NotificationType.alert,
            title=(
                "Your Leave Request has been Approved"
                if approved
                else "Your Leave Request has been Rejected"
            ),
            message=message,
            action_url=f"/leave/requests/{leave.id}",
            entity_type="leave_request",
            entity_id=leave.id,
        )

    @staticmethod
    async def missed_checkout(db: AsyncSession, employee: Employee, day: date) -> int:
        return await _deliver(
            db,
            "missed_checkout",
            [employee.id],
            type=NotificationType.reminder,
            title="Reminder: You forgot to check out today",
            message=(
                f"Hi {employee.first_name}, you checked in on {day} but did "
                "not check out. Please check out or request a regularization."
            ),
            action_url="/attendance",
            entity_type="employee",
            entity_id=employee.id,
        )

    @staticmethod
    async def birthday(db: AsyncSession, employee: Employee) -> int:
        return await _deliver(
            db,
            "birthday",
            [employee.id],
            type=NotificationType.celebration,
            title=f"Happy Birthday {employee.first_name}!",
            message=f"Wishing you a wonderful birthday, {employee.full_name}!",
            entity_type="employee",
            entity_id=employee.id,
        )

    @staticmethod
    async def anniversary(db: AsyncSession, employee: Employee, years: int) -> int:
        plural = "year" if years == 1 else "years"
        return await _deliver(
            db,
            "anniversary",
            [employee.id],
            type=NotificationType.celebration,
            title=f"Happy Work Anniversary {employee.first_name}!",
            message=(
                f"Congratulations on completing {years} {plural} with us, "
                f"{employee.full_name}!"
            ),
            entity_type="employee",
            entity_id=employee.id,
        )
