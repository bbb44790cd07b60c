"""Core HR ORM model: Employee.

SQLAlchemy 2.0 async-compatible model with Mapped[] annotations.
Column names match the PostgreSQL schema defined in 001_initial_schema.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from dayflow.common.constants import (
    CurrentAttendanceStatus,
    EmploymentStatus,
    EmploymentType,
    GenderType,
    UserRole,
)
from dayflow.database import Base


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base):
    """Core employee record — central entity for the HR platform."""

    __tablename__ = "employees"
    __mapper_args__ = {"eager_defaults": True}

    # ── Primary key ─────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # ── Identifiers ─────────────────────────────────────────────────
    employee_code: Mapped[str] = mapped_column(
        sa.String(20), unique=True, nullable=False,
    )

    # ── Name / Contact ──────────────────────────────────────────────
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    email: Mapped[str] = mapped_column(
        sa.String(255), unique=True, nullable=False,
    )
    phone: Mapped[Optional[str]] = mapped_column(sa.String(20))
    address: Mapped[Optional[str]] = mapped_column(sa.Text)

    # ── Demographics ────────────────────────────────────────────────
    gender: Mapped[Optional[GenderType]] = mapped_column(
        sa.Enum(GenderType, name="gender_type"),
    )
    date_of_birth: Mapped[Optional[date]] = mapped_column(sa.Date)

    # ── Org / Job ───────────────────────────────────────────────────
    department: Mapped[str] = mapped_column(
        sa.String(100), nullable=False, server_default="General",
    )
    designation: Mapped[Optional[str]] = mapped_column(sa.String(150))
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role"),
        nullable=False,
        default=UserRole.employee,
        server_default=UserRole.employee.value,
    )
    reporting_manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )

    # ── Employment lifecycle ────────────────────────────────────────
    employment_type: Mapped[EmploymentType] = mapped_column(
        sa.Enum(EmploymentType, name="employment_type"),
        nullable=False,
        default=EmploymentType.full_time,
        server_default=EmploymentType.full_time.value,
    )
    status: Mapped[EmploymentStatus] = mapped_column(
        sa.Enum(EmploymentStatus, name="employment_status"),
        nullable=False,
        default=EmploymentStatus.active,
        server_default=EmploymentStatus.active.value,
    )
    join_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    current_attendance_status: Mapped[CurrentAttendanceStatus] = mapped_column(
        sa.Enum(CurrentAttendanceStatus, name="current_attendance_status"),
        nullable=False,
        default=CurrentAttendanceStatus.not_checked_in,
        server_default=CurrentAttendanceStatus.not_checked_in.value,
    )

    # ── External IDs ────────────────────────────────────────────────
    google_id: Mapped[Optional[str]] = mapped_column(
        sa.String(255), unique=True,
    )

    # ── Status / Timestamps ─────────────────────────────────────────
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.true(),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
        onupdate=sa.func.now(),
    )

    # ── Helpers ─────────────────────────────────────────────────────

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return (
            f"<Employee {self.employee_code} "
            f"{self.first_name} {self.last_name}>"
        )
