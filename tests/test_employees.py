"""Employee module tests — create (with salary and leave bootstrap), read,
search, update and role-based access on the directory endpoints.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from dayflow.attendance.service import AttendanceService
from dayflow.common.audit import AuditTrail
from dayflow.common.constants import (
    Department,
    EmploymentStatus,
    LeaveCategory,
    UserRole,
)
from dayflow.common.exceptions import (
    ConflictError,
    NotFoundException,
    ValidationException,
)
from dayflow.common.pagination import PaginationParams
from dayflow.core_hr.schemas import EmployeeCreate, EmployeeSelfUpdate, EmployeeUpdate
from dayflow.core_hr.service import EmployeeService
from dayflow.leave.models import LeaveBalance
from dayflow.salary.service import SalaryService
from tests.conftest import seed_employee


# ── Helpers ─────────────────────────────────────────────────────────


def _create_payload(**overrides) -> EmployeeCreate:
    data = {
        "employee_code": "DF-1001",
        "first_name": "Priya",
        "last_name": "Sharma",
        "email": "Priya.Sharma@dayflow.io",
        "department": Department.finance,
        "designation": "Accountant",
        "join_date": date(2026, 2, 2),
        "monthly_wage": Decimal("50000"),
    }
    data.update(overrides)
    return EmployeeCreate(**data)


def _page() -> PaginationParams:
    return PaginationParams(page=1, page_size=50, sort=None)


# ═════════════════════════════════════════════════════════════════════
# Service
# ═════════════════════════════════════════════════════════════════════


async def test_create_employee_bootstraps_salary_and_leave(db, hr_user):
    emp = await EmployeeService.create_employee(db, _create_payload(), actor_id=hr_user.id)
    await db.commit()

    assert emp.email == "priya.sharma@dayflow.io"
    assert emp.department == "Finance"
    assert emp.role == UserRole.employee

    breakdown = await SalaryService.get_breakdown(db, emp.id)
    assert breakdown.net_salary == Decimal("46800.00")
    assert breakdown.effective_from == date(2026, 2, 2)

    rows = (
        await db.execute(select(LeaveBalance).where(LeaveBalance.employee_id == emp.id))
    ).scalars().all()
    assert {(r.category, r.year) for r in rows} >= {
        (LeaveCategory.vacation, 2026),
        (LeaveCategory.sick, 2026),
        (LeaveCategory.personal, 2026),
    }

    audit = (
        await db.execute(select(AuditTrail).where(AuditTrail.entity_id == emp.id))
    ).scalars().all()
    assert [a.action for a in audit] == ["create"]


async def test_create_duplicate_email_conflicts(db, employee):
    with pytest.raises(ConflictError) as exc_info:
        await EmployeeService.create_employee(db, _create_payload(email=employee.email))
    assert "email" in exc_info.value.errors


async def test_create_duplicate_code_conflicts(db, employee):
    with pytest.raises(ConflictError) as exc_info:
        await EmployeeService.create_employee(
            db, _create_payload(employee_code=employee.employee_code),
        )
    assert "employee_code" in exc_info.value.errors


async def test_create_with_unknown_manager(db):
    with pytest.raises(NotFoundException):
        await EmployeeService.create_employee(
            db, _create_payload(reporting_manager_id=uuid.uuid4()),
        )


async def test_update_changes_only_given_fields(db, employee, hr_user):
    updated = await EmployeeService.update_employee(
        db,
        employee.id,
        EmployeeUpdate(designation="Staff Engineer", department=Department.product),
        actor_id=hr_user.id,
    )
    await db.commit()

    assert updated.designation == "Staff Engineer"
    assert updated.department == "Product"
    assert updated.last_name == "Rao"

    audit = (
        await db.execute(
            select(AuditTrail).where(
                AuditTrail.entity_id == employee.id, AuditTrail.action == "update",
            )
        )
    ).scalars().one()
    assert audit.old_values["department"] == "Engineering"


async def test_update_self_manager_rejected(db, employee):
    with pytest.raises(ValidationException):
        await EmployeeService.update_employee(
            db, employee.id, EmployeeUpdate(reporting_manager_id=employee.id),
        )


async def test_list_search_and_filters(db, employee, hr_user):
    await seed_employee(db, first_name="Rohan", last_name="Das", department="Design")
    await seed_employee(db, first_name="Rhea", last_name="Kapoor", is_active=False)

    rows, meta = await EmployeeService.list_employees(db, _page(), search="ro")
    assert [e.first_name for e in rows] == ["Rohan"]

    rows, meta = await EmployeeService.list_employees(
        db, _page(), department=Department.design,
    )
    assert [e.first_name for e in rows] == ["Rohan"]

    rows, meta = await EmployeeService.list_employees(db, _page(), is_active=False)
    assert [e.first_name for e in rows] == ["Rhea"]
    assert meta.total == 1


async def test_list_filters_by_status(db, employee):
    await seed_employee(db, first_name="Tara")
    await EmployeeService.update_employee(
        db, employee.id, EmployeeUpdate(status=EmploymentStatus.inactive),
    )
    await db.commit()

    rows, _ = await EmployeeService.list_employees(
        db, _page(), status=EmploymentStatus.inactive,
    )
    assert [e.id for e in rows] == [employee.id]


async def test_update_own_profile(db, employee):
    updated = await EmployeeService.update_own_profile(
        db, employee, EmployeeSelfUpdate(phone="+91 98450 12345", address="Indiranagar"),
    )
    await db.commit()

    assert updated.phone == "+91 98450 12345"
    assert updated.address == "Indiranagar"
    assert updated.department == "Engineering"

    audit = (
        await db.execute(
            select(AuditTrail).where(
                AuditTrail.entity_id == employee.id, AuditTrail.action == "update",
            )
        )
    ).scalars().one()
    assert audit.actor_id == employee.id


async def test_deactivate_employee(db, employee, hr_user):
    gone = await EmployeeService.deactivate_employee(db, employee.id, actor_id=hr_user.id)
    await db.commit()

    assert gone.status == EmploymentStatus.terminated
    assert gone.is_active is False

    again = await EmployeeService.deactivate_employee(db, employee.id, actor_id=hr_user.id)
    await db.commit()
    assert again.id == employee.id

    audit = (
        await db.execute(
            select(AuditTrail).where(
                AuditTrail.entity_id == employee.id, AuditTrail.action == "deactivate",
            )
        )
    ).scalars().all()
    assert len(audit) == 1
    assert audit[0].old_values == {"status": "active", "is_active": True}


async def test_deactivate_rules(db, hr_user):
    with pytest.raises(ValidationException):
        await EmployeeService.deactivate_employee(db, hr_user.id, actor_id=hr_user.id)
    with pytest.raises(NotFoundException):
        await EmployeeService.deactivate_employee(db, uuid.uuid4(), actor_id=hr_user.id)


async def test_employee_stats(db, employee):
    await seed_employee(db, first_name="Dia", department="Design")
    await seed_employee(db, first_name="Old", is_active=False)
    await AttendanceService.check_in(
        db, employee.id, timestamp=datetime(2026, 3, 2, 3, 35, tzinfo=timezone.utc),
    )
    await db.commit()

    stats = await EmployeeService.stats(db, date(2026, 3, 2))

    assert stats.total == 3
    assert stats.active == 2
    assert stats.by_department == {"Design": 1, "Engineering": 1}
    assert stats.by_status == {"active": 3}
    assert stats.attendance_today == {"present": 1, "not_checked_in": 1}


# ═════════════════════════════════════════════════════════════════════
# API
# ═════════════════════════════════════════════════════════════════════


async def test_api_create_employee(client, hr_headers):
    resp = await client.post(
        "/api/v1/employees",
        json={
            "employee_code": "DF-2001",
            "first_name": "Kabir",
            "last_name": "Singh",
            "email": "kabir.singh@dayflow.io",
            "department": "Sales",
            "join_date": "2026-01-05",
            "monthly_wage": "40000",
        },
        headers=hr_headers,
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["department"] == "Sales"
    assert body["current_attendance_status"] == "not_checked_in"

    dup = await client.post(
        "/api/v1/employees",
        json={
            "employee_code": "DF-2002",
            "first_name": "Kabir",
            "last_name": "Singh",
            "email": "kabir.singh@dayflow.io",
            "join_date": "2026-01-05",
        },
        headers=hr_headers,
    )
    assert dup.status_code == 409
    assert dup.json()["type"].endswith("/conflict")


async def test_api_create_requires_staff(client, employee_headers):
    resp = await client.post(
        "/api/v1/employees",
        json={
            "employee_code": "DF-3001",
            "first_name": "X",
            "last_name": "Y",
            "email": "x.y@dayflow.io",
            "join_date": "2026-01-05",
        },
        headers=employee_headers,
    )
    assert resp.status_code == 403


async def test_api_create_rejects_bad_payload(client, hr_headers):
    resp = await client.post(
        "/api/v1/employees",
        json={"employee_code": "DF-4001", "first_name": "", "email": "not-an-email"},
        headers=hr_headers,
    )
    assert resp.status_code == 422
    errors = resp.json()["errors"]
    assert "email" in errors
    assert "join_date" in errors


async def test_api_list_is_staff_only(client, employee, employee_headers, hr_headers):
    denied = await client.get("/api/v1/employees", headers=employee_headers)
    assert denied.status_code == 403

    ok = await client.get("/api/v1/employees", params={"search": "asha"}, headers=hr_headers)
    assert ok.status_code == 200
    assert [e["id"] for e in ok.json()["data"]] == [str(employee.id)]
    assert ok.json()["meta"]["total"] == 1


async def test_api_me(client, employee, employee_headers):
    resp = await client.get("/api/v1/employees/me", headers=employee_headers)

    assert resp.status_code == 200
    assert resp.json()["id"] == str(employee.id)
    assert resp.json()["employment_type"] == "full_time"


async def test_api_profile_visibility(client, employee, hr_user, employee_headers, hr_headers):
    own = await client.get(f"/api/v1/employees/{employee.id}", headers=employee_headers)
    assert own.status_code == 200

    other = await client.get(f"/api/v1/employees/{hr_user.id}", headers=employee_headers)
    assert other.status_code == 403

    staff = await client.get(f"/api/v1/employees/{employee.id}", headers=hr_headers)
    assert staff.status_code == 200

    missing = await client.get(f"/api/v1/employees/{uuid.uuid4()}", headers=hr_headers)
    assert missing.status_code == 404


async def test_api_update_employee(client, employee, employee_headers, hr_headers):
    denied = await client.put(
        f"/api/v1/employees/{employee.id}", json={"designation": "CTO"}, headers=employee_headers,
    )
    assert denied.status_code == 403

    ok = await client.put(
        f"/api/v1/employees/{employee.id}",
        json={"designation": "Engineering Manager", "role": "hr"},
        headers=hr_headers,
    )
    assert ok.status_code == 200
    assert ok.json()["designation"] == "Engineering Manager"
    assert ok.json()["role"] == "hr"


async def test_api_update_my_profile(client, employee, employee_headers):
    resp = await client.put(
        "/api/v1/employees/me",
        json={"phone": "+91 98450 12345", "role": "admin"},
        headers=employee_headers,
    )

    assert resp.status_code == 200
    assert resp.json()["phone"] == "+91 98450 12345"
    assert resp.json()["role"] == "employee"


async def test_api_stats_is_staff_only(client, employee, hr_user, employee_headers, hr_headers):
    denied = await client.get("/api/v1/employees/stats", headers=employee_headers)
    assert denied.status_code == 403

    ok = await client.get(
        "/api/v1/employees/stats", params={"day": "2026-03-02"}, headers=hr_headers,
    )
    assert ok.status_code == 200
    body = ok.json()
    assert body["total"] == 2
    assert body["attendance_today"] == {"not_checked_in": 2}


async def test_api_deactivate_employee(client, employee, employee_headers, hr_headers):
    denied = await client.delete(
        f"/api/v1/employees/{employee.id}", headers=employee_headers,
    )
    assert denied.status_code == 403

    resp = await client.delete(f"/api/v1/employees/{employee.id}", headers=hr_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "terminated"
    assert resp.json()["is_active"] is False

    after = await client.get("/api/v1/auth/me", headers=employee_headers)
    assert after.status_code == 401
