"""Day-record arithmetic: check-in status, worked hours, period summaries.

Pure functions over timestamps and records. Hours are exact ``Decimal``
values; rounding happens in the response schemas.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from dayflow.common.constants import AttendanceStatus
from dayflow.config import settings

ZERO = Decimal("0")
SECONDS_PER_HOUR = Decimal("3600")
MINUTES_PER_HOUR = Decimal("60")

# Statuses that count as a worked day when averaging hours
WORKED_STATUSES = frozenset(
    {AttendanceStatus.present, AttendanceStatus.late, AttendanceStatus.half_day}
)


def local_zone() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps read back from storage."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def local_date(moment: datetime) -> date:
    """Calendar date of *moment* in the configured office timezone."""
    return as_utc(moment).astimezone(local_zone()).date()


def status_for_check_in(moment: datetime) -> AttendanceStatus:
    """``late`` when the local check-in hour is at or past the cutoff."""
    local = as_utc(moment).astimezone(local_zone())
    if local.hour >= settings.LATE_CHECKIN_HOUR:
        return AttendanceStatus.late
    return AttendanceStatus.present


def worked_hours(
    check_in: datetime,
    check_out: datetime,
    break_minutes: int = 0,
) -> tuple[Decimal, Decimal]:
    """Return ``(total_hours, overtime_hours)``.

    ``total = (out - in) - break/60``, floored at zero;
    ``overtime = max(0, total - standard day)``.
    """
    elapsed = as_utc(check_out) - as_utc(check_in)
    seconds = Decimal(elapsed.days * 86400 + elapsed.seconds) + (
        Decimal(elapsed.microseconds) / Decimal(1_000_000)
    )
    total = seconds / SECONDS_PER_HOUR - Decimal(break_minutes) / MINUTES_PER_HOUR
    total = max(ZERO, total)
    overtime = max(ZERO, total - settings.STANDARD_WORK_HOURS)
    return total, overtime


def summarize(records: Iterable) -> dict:
    """Roll day records into counts per status plus total and average hours.

    The average is taken over present, late and half-day records only.
    """
    counts = {status.value: 0 for status in AttendanceStatus}
    total_hours = ZERO
    worked_days = 0
    overtime = ZERO

    for record in records:
        counts[record.status.value] += 1
        if record.status in WORKED_STATUSES:
            worked_days += 1
            if record.total_hours is not None:
                total_hours += Decimal(record.total_hours)
        if record.overtime_hours:
            overtime += Decimal(record.overtime_hours)

    avg_hours = total_hours / worked_days if worked_days else ZERO
    return {
        "counts": counts,
        "worked_days": worked_days,
        "total_hours": total_hours,
        "avg_hours": avg_hours,
        "overtime_hours": overtime,
    }
