"""On-demand scans that fan out reminder and celebration notifications.

Nothing here runs on a timer; an admin endpoint (or an external cron
hitting it) triggers each scan for a given day.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date
from typing import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.attendance.models import AttendanceDayRecord
from dayflow.common.constants import EmploymentStatus
from dayflow.core_hr.models import Employee
from dayflow.notifications.schemas import ScanResult
from dayflow.notifications.service import NotificationDispatcher

logger = logging.getLogger(__name__)


def _same_day_of_year(anchor: date, day: date) -> bool:
    """Month/day match; 29 Feb anchors fall on 28 Feb in common years."""
    if (anchor.month, anchor.day) == (day.month, day.day):
        return True
    return (
        anchor.month == 2
        and anchor.day == 29
        and day.month == 2
        and day.day == 28
        and not calendar.isleap(day.year)
    )


async def _active_employees(db: AsyncSession) -> list[Employee]:
    result = await db.execute(
        select(Employee).where(
            Employee.is_active.is_(True),
            Employee.status == EmploymentStatus.active,
        )
    )
    return list(result.scalars().all())


async def scan_missed_checkouts(db: AsyncSession, day: date) -> ScanResult:
    """Remind everyone who checked in on *day* but never checked out."""
    result = await db.execute(
        select(Employee)
        .join(AttendanceDayRecord, AttendanceDayRecord.employee_id == Employee.id)
        .where(
            AttendanceDayRecord.date == day,
            AttendanceDayRecord.check_in_at.is_not(None),
            AttendanceDayRecord.check_out_at.is_(None),
        )
    )
    employees = result.scalars().all()

    delivered = 0
    for employee in employees:
        delivered += await NotificationDispatcher.missed_checkout(db, employee, day)

    logger.info(
        "Missed-checkout scan for %s: matched=%d delivered=%d",
        day, len(employees), delivered,
    )
    return ScanResult(scan="missed_checkouts", day=day, matched=len(employees), delivered=delivered)


async def scan_birthdays(db: AsyncSession, day: date) -> ScanResult:
    matched = [
        e for e in await _active_employees(db)
        if e.date_of_birth is not None and _same_day_of_year(e.date_of_birth, day)
    ]

    delivered = 0
    for employee in matched:
        delivered += await NotificationDispatcher.birthday(db, employee)

    logger.info("Birthday scan for %s: matched=%d delivered=%d", day, len(matched), delivered)
    return ScanResult(scan="birthdays", day=day, matched=len(matched), delivered=delivered)


async def scan_anniversaries(db: AsyncSession, day: date) -> ScanResult:
    """Work anniversaries; the join date itself (zero years) does not count."""
    delivered = 0
    matched = 0
    for employee in await _active_employees(db):
        years = day.year - employee.join_date.year
        if years < 1 or not _same_day_of_year(employee.join_date, day):
            continue
        matched += 1
        delivered += await NotificationDispatcher.anniversary(db, employee, years)

    logger.info("Anniversary scan for %s: matched=%d delivered=%d", day, matched, delivered)
    return ScanResult(scan="anniversaries", day=day, matched=matched, delivered=delivered)


SCANS: dict[str, Callable[[AsyncSession, date], Awaitable[ScanResult]]] = {
    "missed_checkouts": scan_missed_checkouts,
    "birthdays": scan_birthdays,
    "anniversaries": scan_anniversaries,
}
