"""Leave module test suite — application, overlap detection, approval with
ledger debit, rejection, cancellation with credit, half-day rules,
listings, stats and API endpoints.

Tests run against SQLite via the shared conftest.py fixtures.
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import delete, select

from dayflow.common.constants import (
    HalfDayType,
    LeaveCategory,
    LeaveStatus,
    LeaveType,
)
from dayflow.common.exceptions import (
    ForbiddenException,
    InsufficientBalance,
    InvalidTransition,
    NotFoundException,
    OverlappingRequest,
    ValidationException,
)
from dayflow.common.pagination import PaginationParams
from dayflow.core_hr.schemas import EmployeeCreate
from dayflow.core_hr.service import EmployeeService
from dayflow.leave.ledger import LeaveLedger
from dayflow.leave.models import LeaveBalance
from dayflow.leave.rules import category_for, check_transition, count_days, ledger_year
from dayflow.leave.schemas import LeaveRequestCreate
from dayflow.leave.service import LeaveService
from dayflow.notifications.models import Notification
from tests.conftest import headers_for, seed_employee


# ═════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════


def _payload(
    start: date,
    end: date,
    leave_type: LeaveType = LeaveType.vacation,
    **kwargs,
) -> LeaveRequestCreate:
    return LeaveRequestCreate(
        leave_type=leave_type,
        reason=kwargs.pop("reason", "Family function"),
        start_date=start,
        end_date=end,
        **kwargs,
    )


def _page() -> PaginationParams:
    return PaginationParams(page=1, page_size=50, sort=None)


async def _balances(db, employee, year: int = 2026):
    await LeaveLedger.initialize(db, employee.id, year)
    await db.commit()


async def _remaining(db, employee, category: LeaveCategory, year: int = 2026) -> Decimal:
    ledger = await LeaveLedger.get_balance(db, employee.id, year)
    return ledger[category]["remaining"]


# ═════════════════════════════════════════════════════════════════════
# Rules
# ═════════════════════════════════════════════════════════════════════


def test_count_days_inclusive_span():
    assert count_days(date(2026, 3, 9), date(2026, 3, 11)) == Decimal("3")
    assert count_days(date(2026, 3, 9), date(2026, 3, 9)) == Decimal("1")


def test_count_days_half_day():
    assert count_days(date(2026, 3, 9), date(2026, 3, 9), is_half_day=True) == Decimal("0.5")


def test_count_days_rejects_multi_day_half_day():
    with pytest.raises(ValidationException) as exc_info:
        count_days(date(2026, 3, 9), date(2026, 3, 10), is_half_day=True)
    assert "is_half_day" in exc_info.value.errors


def test_count_days_rejects_reversed_range():
    with pytest.raises(ValidationException):
        count_days(date(2026, 3, 10), date(2026, 3, 9))


def test_category_mapping():
    assert category_for(LeaveType.annual) == LeaveCategory.vacation
    assert category_for(LeaveType.casual) == LeaveCategory.personal
    assert category_for(LeaveType.sick) == LeaveCategory.sick
    assert category_for(LeaveType.maternity) == LeaveCategory.unpaid


def test_cross_year_request_charged_to_start_year():
    assert ledger_year(date(2026, 12, 30)) == 2026


_ALLOWED = {
    (LeaveStatus.pending, LeaveStatus.approved),
    (LeaveStatus.pending, LeaveStatus.rejected),
    (LeaveStatus.pending, LeaveStatus.cancelled),
    (LeaveStatus.approved, LeaveStatus.cancelled),
}


@pytest.mark.parametrize("current", list(LeaveStatus))
@pytest.mark.parametrize("requested", list(LeaveStatus))
def test_transition_matrix(current, requested):
    if (current, requested) in _ALLOWED:
        check_transition(current, requested)
    else:
        with pytest.raises(InvalidTransition):
            check_transition(current, requested)


# ═════════════════════════════════════════════════════════════════════
# Apply
# ═════════════════════════════════════════════════════════════════════


async def test_apply_creates_pending_request(db, employee):
    await _balances(db, employee)

    leave = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 11)),
    )
    await db.commit()

    assert leave.status == LeaveStatus.pending
    assert leave.category == LeaveCategory.vacation
    assert Decimal(leave.total_days) == Decimal("3")
    # Nothing is debited until approval
    assert await _remaining(db, employee, LeaveCategory.vacation) == Decimal("20")


async def test_apply_notifies_hr_and_admin(db, employee, hr_user, admin_user):
    await _balances(db, employee)

    leave = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 9)),
    )
    await db.commit()

    rows = (
        await db.execute(select(Notification).where(Notification.entity_id == leave.id))
    ).scalars().all()
    assert {n.recipient_id for n in rows} == {hr_user.id, admin_user.id}
    assert all(n.event == "leave_requested" for n in rows)


async def test_apply_overlap_is_rejected(db, employee):
    await _balances(db, employee)
    first = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 11)),
    )
    await db.commit()

    with pytest.raises(OverlappingRequest) as exc_info:
        await LeaveService.apply(
            db, employee.id, _payload(date(2026, 3, 11), date(2026, 3, 13), LeaveType.sick),
        )
    assert exc_info.value.conflicting_id == first.id


async def test_apply_after_cancel_does_not_overlap(db, employee):
    await _balances(db, employee)
    first = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 11)),
    )
    await LeaveService.cancel(db, first.id, employee)
    await db.commit()

    second = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 11)),
    )
    assert second.status == LeaveStatus.pending


async def test_apply_more_than_remaining_is_rejected(db, employee):
    await _balances(db, employee)

    with pytest.raises(ValidationException) as exc_info:
        await LeaveService.apply(
            db, employee.id,
            _payload(date(2026, 3, 2), date(2026, 3, 8), LeaveType.personal),
        )
    assert "total_days" in exc_info.value.errors


async def test_apply_half_day_defaults_first_half(db, employee):
    await _balances(db, employee)

    leave = await LeaveService.apply(
        db, employee.id,
        _payload(date(2026, 3, 9), date(2026, 3, 9), LeaveType.sick, is_half_day=True),
    )

    assert Decimal(leave.total_days) == Decimal("0.5")
    assert leave.half_day_type == HalfDayType.first_half


async def test_apply_unknown_employee(db):
    with pytest.raises(NotFoundException):
        await LeaveService.apply(
            db, uuid.uuid4(), _payload(date(2026, 3, 9), date(2026, 3, 9)),
        )


# ═════════════════════════════════════════════════════════════════════
# Approve / reject
# ═════════════════════════════════════════════════════════════════════


async def test_approve_debits_ledger(db, employee, hr_user):
    await _balances(db, employee)
    leave = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 11)),
    )
    await db.commit()

    approved = await LeaveService.approve(db, leave.id, hr_user, admin_comments="Enjoy")
    await db.commit()

    assert approved.status == LeaveStatus.approved
    assert approved.approved_by == hr_user.id
    assert approved.admin_comments == "Enjoy"
    assert await _remaining(db, employee, LeaveCategory.vacation) == Decimal("17")

    decided = (
        await db.execute(
            select(Notification).where(
                Notification.recipient_id == employee.id,
                Notification.event == "leave_decided",
            )
        )
    ).scalars().all()
    assert len(decided) == 1
    assert "Comments: Enjoy" in decided[0].message


async def test_approve_with_insufficient_balance_changes_nothing(db, employee, hr_user):
    await _balances(db, employee)
    first = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 11), LeaveType.personal),
    )
    second = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 16), date(2026, 3, 18), LeaveType.casual),
    )
    await db.commit()

    await LeaveService.approve(db, first.id, hr_user)
    await db.commit()

    with pytest.raises(InsufficientBalance) as exc_info:
        await LeaveService.approve(db, second.id, hr_user)
    await db.commit()

    assert exc_info.value.remaining == Decimal("2")
    reloaded = await LeaveService.get_request(db, second.id)
    assert reloaded.status == LeaveStatus.pending
    assert await _remaining(db, employee, LeaveCategory.personal) == Decimal("2")


async def test_approve_unpaid_leave_skips_ledger(db, employee, hr_user):
    await _balances(db, employee)
    leave = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 2), date(2026, 3, 20), LeaveType.unpaid),
    )
    await LeaveService.approve(db, leave.id, hr_user)
    await db.commit()

    ledger = await LeaveLedger.get_balance(db, employee.id, 2026)
    assert ledger[LeaveCategory.unpaid]["used"] == Decimal("0")
    assert ledger[LeaveCategory.vacation]["used"] == Decimal("0")


async def test_reject_leaves_balance_untouched(db, employee, hr_user):
    await _balances(db, employee)
    leave = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 11)),
    )

    rejected = await LeaveService.reject(db, leave.id, hr_user, admin_comments="Release week")
    await db.commit()

    assert rejected.status == LeaveStatus.rejected
    assert rejected.rejected_by == hr_user.id
    assert await _remaining(db, employee, LeaveCategory.vacation) == Decimal("20")


async def test_decided_request_cannot_be_decided_again(db, employee, hr_user):
    await _balances(db, employee)
    leave = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 9)),
    )
    await LeaveService.reject(db, leave.id, hr_user)
    await db.commit()

    with pytest.raises(InvalidTransition):
        await LeaveService.approve(db, leave.id, hr_user)
    with pytest.raises(InvalidTransition):
        await LeaveService.cancel(db, leave.id, employee)


# ═════════════════════════════════════════════════════════════════════
# Ledger years
# ═════════════════════════════════════════════════════════════════════


async def test_later_year_balance_created_on_first_use(db, hr_user):
    employee = await EmployeeService.create_employee(
        db,
        EmployeeCreate(
            employee_code="DF-7001",
            first_name="Meera",
            last_name="Pillai",
            email="meera.pillai@dayflow.io",
            join_date=date(2026, 1, 5),
            monthly_wage=Decimal("50000"),
        ),
    )
    await db.commit()

    leave = await LeaveService.apply(
        db, employee.id, _payload(date(2031, 1, 13), date(2031, 1, 14)),
    )
    await LeaveService.approve(db, leave.id, hr_user)
    await db.commit()

    assert await _remaining(db, employee, LeaveCategory.vacation, 2031) == Decimal("18")
    assert await _remaining(db, employee, LeaveCategory.sick, 2031) == Decimal("10")


async def test_approve_creates_missing_year_rows(db, employee, hr_user):
    # Drop the rows apply created so approval meets an uninitialised year
    leave = await LeaveService.apply(
        db, employee.id, _payload(date(2032, 2, 2), date(2032, 2, 2), LeaveType.sick),
    )
    await db.commit()
    await db.execute(delete(LeaveBalance).where(LeaveBalance.year == 2032))
    await db.commit()

    await LeaveService.approve(db, leave.id, hr_user)
    await db.commit()

    assert await _remaining(db, employee, LeaveCategory.sick, 2032) == Decimal("9")


async def test_balance_for_new_year_reports_defaults(db, employee):
    balance = await LeaveService.get_balance(db, employee.id, 2033)

    vacation = next(b for b in balance.balances if b.category == LeaveCategory.vacation)
    assert vacation.allocated == Decimal("20")
    assert vacation.remaining == Decimal("20")

    with pytest.raises(NotFoundException):
        await LeaveService.get_balance(db, uuid.uuid4(), 2033)


async def test_remaining_never_negative_across_sequence(db, employee, hr_user):
    await _balances(db, employee)
    tracked = (LeaveCategory.vacation, LeaveCategory.sick, LeaveCategory.personal)

    async def check():
        await db.commit()
        ledger = await LeaveLedger.get_balance(db, employee.id, 2026)
        for category in tracked:
            assert ledger[category]["remaining"] >= 0

    trip = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 11)),
    )
    await check()
    errand = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 16), date(2026, 3, 18), LeaveType.personal),
    )
    await check()
    await LeaveService.approve(db, trip.id, hr_user)
    await check()
    move = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 23), date(2026, 3, 24), LeaveType.casual),
    )
    await check()
    await LeaveService.approve(db, errand.id, hr_user)
    await check()
    await LeaveService.approve(db, move.id, hr_user)
    await check()
    fever = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 30), date(2026, 3, 30), LeaveType.sick),
    )
    await LeaveService.reject(db, fever.id, hr_user)
    await check()

    with pytest.raises(ValidationException):
        await LeaveService.apply(
            db,
            employee.id,
            _payload(date(2026, 4, 6), date(2026, 4, 6), LeaveType.personal, is_half_day=True),
        )
    await check()

    await LeaveService.cancel(db, errand.id, employee)
    await check()
    await LeaveService.cancel(db, trip.id, employee)
    await check()
    with pytest.raises(InvalidTransition):
        await LeaveService.approve(db, trip.id, hr_user)
    await check()

    ledger = await LeaveLedger.get_balance(db, employee.id, 2026)
    assert ledger[LeaveCategory.vacation]["remaining"] == Decimal("20")
    assert ledger[LeaveCategory.personal]["remaining"] == Decimal("3")
    assert ledger[LeaveCategory.sick]["remaining"] == Decimal("10")


# ═════════════════════════════════════════════════════════════════════
# Cancel
# ═════════════════════════════════════════════════════════════════════


async def test_cancel_approved_restores_balance(db, employee, hr_user):
    await _balances(db, employee)
    leave = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 11)),
    )
    await LeaveService.approve(db, leave.id, hr_user)
    await db.commit()
    assert await _remaining(db, employee, LeaveCategory.vacation) == Decimal("17")

    cancelled = await LeaveService.cancel(db, leave.id, employee, reason="Plans changed")
    await db.commit()

    assert cancelled.status == LeaveStatus.cancelled
    assert cancelled.cancellation_reason == "Plans changed"
    assert await _remaining(db, employee, LeaveCategory.vacation) == Decimal("20")


async def test_cancel_pending_does_not_credit(db, employee):
    await _balances(db, employee)
    leave = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 11)),
    )

    await LeaveService.cancel(db, leave.id, employee)
    await db.commit()

    assert await _remaining(db, employee, LeaveCategory.vacation) == Decimal("20")


async def test_cancel_someone_elses_request_is_forbidden(db, employee, hr_user):
    colleague = await seed_employee(db, first_name="Ravi")
    await _balances(db, colleague)
    leave = await LeaveService.apply(
        db, colleague.id, _payload(date(2026, 3, 9), date(2026, 3, 9)),
    )
    await db.commit()

    with pytest.raises(ForbiddenException):
        await LeaveService.cancel(db, leave.id, employee)

    cancelled = await LeaveService.cancel(db, leave.id, hr_user, can_cancel_any=True)
    assert cancelled.status == LeaveStatus.cancelled


# ═════════════════════════════════════════════════════════════════════
# Listings / stats
# ═════════════════════════════════════════════════════════════════════


async def test_list_mine_includes_balance(db, employee):
    await _balances(db, employee)
    await LeaveService.apply(db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 9)))
    await LeaveService.apply(db, employee.id, _payload(date(2026, 4, 6), date(2026, 4, 7)))
    await db.commit()

    mine = await LeaveService.list_mine(db, employee.id, year=2026)

    assert len(mine.data) == 2
    assert mine.balance.year == 2026
    vacation = next(b for b in mine.balance.balances if b.category == LeaveCategory.vacation)
    assert vacation.allocated == Decimal("20")


async def test_list_all_filters_and_pending_count(db, employee, hr_user):
    designer = await seed_employee(db, first_name="Meera", department="Design")
    await _balances(db, employee)
    await _balances(db, designer)
    a = await LeaveService.apply(db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 9)))
    await LeaveService.apply(db, employee.id, _payload(date(2026, 3, 16), date(2026, 3, 16)))
    await LeaveService.apply(db, designer.id, _payload(date(2026, 3, 9), date(2026, 3, 9)))
    await LeaveService.approve(db, a.id, hr_user)
    await db.commit()

    everything = await LeaveService.list_all(db, _page())
    assert everything.meta.total == 3
    assert everything.pending_count == 2

    engineering = await LeaveService.list_all(
        db, _page(),
        department="Engineering", status=LeaveStatus.approved,
    )
    assert [r.id for r in engineering.data] == [a.id]
    assert engineering.pending_count == 1
    assert engineering.data[0].employee.first_name == "Asha"


async def test_stats_groups_approved_days(db, employee, hr_user):
    await _balances(db, employee)
    a = await LeaveService.apply(db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 11)))
    b = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 4, 6), date(2026, 4, 6), LeaveType.sick),
    )
    await LeaveService.apply(db, employee.id, _payload(date(2026, 5, 4), date(2026, 5, 4)))
    await LeaveService.approve(db, a.id, hr_user)
    await LeaveService.approve(db, b.id, hr_user)
    await db.commit()

    stats = await LeaveService.stats(db, 2026)

    assert stats.pending_count == 1
    assert stats.approved_days_by_type == {"vacation": Decimal("3"), "sick": Decimal("1")}
    assert stats.approved_days_by_month == {3: Decimal("3"), 4: Decimal("1")}


# ═════════════════════════════════════════════════════════════════════
# API
# ═════════════════════════════════════════════════════════════════════


async def test_api_apply_and_approve(client, db, employee, employee_headers, hr_headers):
    await _balances(db, employee)

    resp = await client.post(
        "/api/v1/leave",
        json={
            "leave_type": "vacation",
            "reason": "Trip",
            "start_date": "2026-03-09",
            "end_date": "2026-03-10",
        },
        headers=employee_headers,
    )
    assert resp.status_code == 201
    leave_id = resp.json()["id"]
    assert Decimal(resp.json()["total_days"]) == Decimal("2")

    decided = await client.put(
        f"/api/v1/leave/{leave_id}/approve", json={"admin_comments": "ok"}, headers=hr_headers,
    )
    assert decided.status_code == 200
    assert decided.json()["status"] == "approved"

    balance = await client.get("/api/v1/leave/balance?year=2026", headers=employee_headers)
    vacation = next(b for b in balance.json()["balances"] if b["category"] == "vacation")
    assert Decimal(vacation["remaining"]) == Decimal("18")


async def test_api_employee_cannot_approve(client, db, employee, employee_headers):
    await _balances(db, employee)
    leave = await LeaveService.apply(
        db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 9)),
    )
    await db.commit()

    resp = await client.put(
        f"/api/v1/leave/{leave.id}/approve", json={}, headers=employee_headers,
    )
    assert resp.status_code == 403


async def test_api_overlap_returns_409(client, db, employee, employee_headers):
    await _balances(db, employee)
    body = {
        "leave_type": "sick",
        "reason": "Fever",
        "start_date": "2026-03-09",
        "end_date": "2026-03-09",
    }

    first = await client.post("/api/v1/leave", json=body, headers=employee_headers)
    assert first.status_code == 201
    again = await client.post("/api/v1/leave", json=body, headers=employee_headers)

    assert again.status_code == 409
    assert again.json()["type"].endswith("/overlapping-request")


async def test_api_cannot_view_colleague_request(client, db, employee, employee_headers):
    colleague = await seed_employee(db, first_name="Ravi")
    await _balances(db, colleague)
    leave = await LeaveService.apply(
        db, colleague.id, _payload(date(2026, 3, 9), date(2026, 3, 9)),
    )
    await db.commit()

    resp = await client.get(f"/api/v1/leave/{leave.id}", headers=employee_headers)
    assert resp.status_code == 403

    own = await client.get(
        f"/api/v1/leave/{leave.id}", headers=await headers_for(db, colleague),
    )
    assert own.status_code == 200


async def test_api_hr_list_with_date_filters(client, db, employee, hr_headers):
    await _balances(db, employee)
    await LeaveService.apply(db, employee.id, _payload(date(2026, 3, 9), date(2026, 3, 9)))
    await LeaveService.apply(db, employee.id, _payload(date(2026, 6, 1), date(2026, 6, 1)))
    await db.commit()

    resp = await client.get(
        "/api/v1/leave",
        params={"from": "2026-03-01", "to": "2026-03-31", "department": "Engineering"},
        headers=hr_headers,
    )

    assert resp.status_code == 200
    body = resp.json()
    assert len(body["data"]) == 1
    assert body["pending_count"] == 1
    assert body["data"][0]["start_date"] == "2026-03-09"
