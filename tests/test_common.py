"""Tests for common utilities — filters, search, pagination, error bodies, audit.

Exercises dayflow/common/* directly against the SQLite test database.
"""

from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.common.audit import AuditTrail, create_audit_entry
from dayflow.common.constants import LeaveStatus
from dayflow.common.exceptions import InsufficientBalance, InvalidTransition
from dayflow.common.filters import apply_filters, apply_search
from dayflow.common.pagination import PaginationParams, paginate
from dayflow.core_hr.models import Employee
from dayflow.leave.rules import check_transition
from tests.conftest import seed_employee


# ═════════════════════════════════════════════════════════════════════
# FILTER TESTS
# ═════════════════════════════════════════════════════════════════════


class TestApplyFilters:
    """Tests for apply_filters utility."""

    async def test_filter_by_equality(self, db: AsyncSession):
        await seed_employee(db, first_name="Alice")
        await seed_employee(db, first_name="Bob")

        query = apply_filters(select(Employee), Employee, {"first_name": "Alice"})
        employees = (await db.execute(query)).scalars().all()

        assert [e.first_name for e in employees] == ["Alice"]

    async def test_filter_none_values_skipped(self, db: AsyncSession):
        await seed_employee(db)

        query = apply_filters(select(Employee), Employee, {"first_name": None, "is_active": True})
        assert len((await db.execute(query)).scalars().all()) == 1

    async def test_filter_by_ilike(self, db: AsyncSession):
        await seed_employee(db, first_name="Alexander")
        await seed_employee(db, first_name="Bobby")

        query = apply_filters(select(Employee), Employee, {"first_name__ilike": "ALEX"})
        employees = (await db.execute(query)).scalars().all()

        assert [e.first_name for e in employees] == ["Alexander"]

    async def test_filter_by_from_to_range(self, db: AsyncSession):
        await seed_employee(db, first_name="E1", join_date=date(2024, 1, 1))
        await seed_employee(db, first_name="E2", join_date=date(2025, 6, 1))
        await seed_employee(db, first_name="E3", join_date=date(2026, 1, 1))

        query = apply_filters(
            select(Employee),
            Employee,
            {"join_date__from": date(2025, 1, 1), "join_date__to": date(2025, 12, 31)},
        )
        employees = (await db.execute(query)).scalars().all()

        assert [e.first_name for e in employees] == ["E2"]

    async def test_filter_by_in(self, db: AsyncSession):
        await seed_employee(db, first_name="A", department="Sales")
        await seed_employee(db, first_name="B", department="Finance")
        await seed_employee(db, first_name="C", department="Design")

        query = apply_filters(
            select(Employee), Employee, {"department__in": ["Sales", "Design"]},
        ).order_by(Employee.first_name)
        employees = (await db.execute(query)).scalars().all()

        assert [e.first_name for e in employees] == ["A", "C"]

    def test_unknown_column_raises(self):
        with pytest.raises(AttributeError):
            apply_filters(select(Employee), Employee, {"no_such_column": 1})


class TestApplySearch:
    """Tests for apply_search utility."""

    async def test_search_matches_any_column(self, db: AsyncSession):
        await seed_employee(db, first_name="Neha", last_name="Joshi")
        await seed_employee(db, first_name="Arun", last_name="Nair")

        query = apply_search(select(Employee), Employee, "josh", ["first_name", "last_name"])
        employees = (await db.execute(query)).scalars().all()

        assert [e.first_name for e in employees] == ["Neha"]

    async def test_blank_search_is_noop(self, db: AsyncSession):
        await seed_employee(db)
        await seed_employee(db)

        query = apply_search(select(Employee), Employee, "   ", ["first_name"])
        assert len((await db.execute(query)).scalars().all()) == 2


# ═════════════════════════════════════════════════════════════════════
# PAGINATION TESTS
# ═════════════════════════════════════════════════════════════════════


class TestPagination:
    """Tests for pagination helper."""

    async def _seed(self, db: AsyncSession, prefix: str, n: int = 5) -> None:
        for i in range(n):
            await seed_employee(db, first_name=f"{prefix}{i}")

    async def test_paginate_with_sort(self, db: AsyncSession):
        await self._seed(db, "P")

        params = PaginationParams(page=1, page_size=3, sort="-first_name")
        rows, meta = await paginate(db, select(Employee), params, model=Employee)

        assert [e.first_name for e in rows] == ["P4", "P3", "P2"]
        assert meta.total == 5
        assert meta.total_pages == 2
        assert meta.has_next is True

    async def test_paginate_page_2(self, db: AsyncSession):
        await self._seed(db, "Q")

        params = PaginationParams(page=2, page_size=3, sort=None)
        rows, meta = await paginate(db, select(Employee), params, model=Employee)

        assert len(rows) == 2
        assert meta.has_prev is True
        assert meta.has_next is False

    async def test_unknown_sort_field_ignored(self, db: AsyncSession):
        await self._seed(db, "R", 2)

        params = PaginationParams(page=1, page_size=10, sort="-password")
        rows, _ = await paginate(db, select(Employee), params, model=Employee)

        assert len(rows) == 2

    async def test_paginate_empty_result(self, db: AsyncSession):
        query = select(Employee).where(Employee.first_name == "ZZZ_NONEXISTENT")
        params = PaginationParams(page=1, page_size=10, sort=None)
        rows, meta = await paginate(db, query, params, model=Employee)

        assert len(rows) == 0
        assert meta.total == 0
        assert meta.total_pages == 0


# ═════════════════════════════════════════════════════════════════════
# ERRORS / AUDIT
# ═════════════════════════════════════════════════════════════════════


class TestProblemDetails:
    """Domain errors render as RFC 7807 bodies."""

    def test_invalid_transition_carries_states(self):
        with pytest.raises(InvalidTransition) as exc_info:
            check_transition(LeaveStatus.cancelled, LeaveStatus.approved)
        assert exc_info.value.status_code == 409
        assert exc_info.value.errors == {"status": ["cancelled -> approved is not permitted."]}

    def test_insufficient_balance_fields(self):
        exc = InsufficientBalance("sick", 3, 1)
        assert exc.error_type == "insufficient-balance"
        assert exc.errors["remaining"] == ["1"]

    async def test_not_found_body(self, client, hr_headers):
        resp = await client.get(f"/api/v1/employees/{uuid.uuid4()}", headers=hr_headers)

        assert resp.status_code == 404
        assert resp.headers["content-type"].startswith("application/problem+json")
        body = resp.json()
        assert body["title"] == "Employee Not Found"
        assert body["instance"].startswith("/api/v1/employees/")

    async def test_health(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200


class TestAudit:
    async def test_create_audit_entry(self, db: AsyncSession, employee):
        await create_audit_entry(
            db,
            action="update",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=employee.id,
            old_values={"designation": None},
            new_values={"designation": "Analyst"},
        )
        await db.commit()

        row = (await db.execute(select(AuditTrail))).scalars().one()
        assert row.action == "update"
        assert row.new_values == {"designation": "Analyst"}
