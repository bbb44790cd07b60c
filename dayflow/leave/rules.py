"""Leave rules: type → balance category mapping and status transitions.

Both tables are checked for completeness at import time, so adding a
``LeaveType`` or ``LeaveStatus`` member without deciding how it behaves
fails loudly on startup instead of silently falling through.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from dayflow.common.constants import LeaveCategory, LeaveStatus, LeaveType
from dayflow.common.exceptions import InvalidTransition, ValidationException

# ── Leave type → balance category ───────────────────────────────────

CATEGORY_FOR_TYPE: dict[LeaveType, LeaveCategory] = {
    LeaveType.paid: LeaveCategory.vacation,
    LeaveType.vacation: LeaveCategory.vacation,
    LeaveType.annual: LeaveCategory.vacation,
    LeaveType.sick: LeaveCategory.sick,
    LeaveType.personal: LeaveCategory.personal,
    LeaveType.casual: LeaveCategory.personal,
    LeaveType.unpaid: LeaveCategory.unpaid,
    LeaveType.maternity: LeaveCategory.unpaid,
    LeaveType.paternity: LeaveCategory.unpaid,
    LeaveType.bereavement: LeaveCategory.unpaid,
    LeaveType.other: LeaveCategory.unpaid,
}

_unmapped = set(LeaveType) - set(CATEGORY_FOR_TYPE)
if _unmapped:
    raise RuntimeError(
        "Leave types without a balance category: "
        + ", ".join(sorted(t.value for t in _unmapped))
    )

# Categories whose balance is tracked; unpaid leave is never debited.
TRACKED_CATEGORIES = frozenset(
    {LeaveCategory.vacation, LeaveCategory.sick, LeaveCategory.personal}
)


def category_for(leave_type: LeaveType) -> LeaveCategory:
    return CATEGORY_FOR_TYPE[leave_type]


def is_tracked(category: LeaveCategory) -> bool:
    return category in TRACKED_CATEGORIES


# ── Status transitions ──────────────────────────────────────────────

ALLOWED_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.pending: frozenset(
        {LeaveStatus.approved, LeaveStatus.rejected, LeaveStatus.cancelled}
    ),
    LeaveStatus.approved: frozenset({LeaveStatus.cancelled}),
    LeaveStatus.rejected: frozenset(),
    LeaveStatus.cancelled: frozenset(),
}

_missing_states = set(LeaveStatus) - set(ALLOWED_TRANSITIONS)
if _missing_states:
    raise RuntimeError(
        "Leave statuses without a transition entry: "
        + ", ".join(sorted(s.value for s in _missing_states))
    )


def check_transition(current: LeaveStatus, requested: LeaveStatus) -> None:
    """Raise ``InvalidTransition`` unless *current* → *requested* is allowed."""
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(current.value, requested.value)


# ── Day counting ────────────────────────────────────────────────────

HALF_DAY = Decimal("0.5")


def count_days(start: date, end: date, *, is_half_day: bool = False) -> Decimal:
    """Inclusive calendar-day span, or 0.5 for a single-day half-day request."""
    if start > end:
        raise ValidationException(
            {"end_date": ["End date must be on or after start date."]}
        )
    if is_half_day:
        if start != end:
            raise ValidationException(
                {"is_half_day": ["A half-day request must cover a single date."]}
            )
        return HALF_DAY
    return Decimal((end - start).days + 1)


def ledger_year(start: date) -> int:
    """Requests spanning a year boundary are charged to the start year."""
    return start.year
