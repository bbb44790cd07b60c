"""Attendance ORM model: AttendanceDayRecord.

One row per (employee, local calendar date), enforced by a unique
constraint so concurrent check-ins cannot create duplicates.
"""

from __future__ import annotations

import uuid
from datetime import date as DateType, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from dayflow.common.constants import (
    AttendanceStatus,
    CheckMethod,
    RegularizationStatus,
)
from dayflow.database import Base


class AttendanceDayRecord(Base):
    """Per-employee, per-day attendance."""

    __tablename__ = "attendance_records"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "date", name="uq_attendance_employee_date"),
        sa.Index("ix_attendance_records_date", "date"),
        sa.Index("ix_attendance_records_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    date: Mapped[DateType] = mapped_column(sa.Date, nullable=False)

    # ── Check-in / check-out ────────────────────────────────────────
    check_in_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    check_in_location: Mapped[Optional[str]] = mapped_column(sa.String(100))
    check_in_method: Mapped[Optional[CheckMethod]] = mapped_column(
        sa.Enum(CheckMethod, name="check_method"),
    )
    check_out_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    check_out_location: Mapped[Optional[str]] = mapped_column(sa.String(100))
    check_out_method: Mapped[Optional[CheckMethod]] = mapped_column(
        sa.Enum(CheckMethod, name="check_method"),
    )

    # ── Derived ─────────────────────────────────────────────────────
    status: Mapped[AttendanceStatus] = mapped_column(
        sa.Enum(AttendanceStatus, name="attendance_status"),
        nullable=False,
        default=AttendanceStatus.absent,
    )
    total_hours: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(10, 6))
    overtime_hours: Mapped[Decimal] = mapped_column(
        sa.Numeric(10, 6), nullable=False, default=Decimal("0"),
    )
    break_minutes: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)

    # ── Manual marking ──────────────────────────────────────────────
    note: Mapped[Optional[str]] = mapped_column(sa.Text)
    marked_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )

    # ── Regularization ──────────────────────────────────────────────
    is_regularized: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False,
    )
    regularization_status: Mapped[Optional[RegularizationStatus]] = mapped_column(
        sa.Enum(RegularizationStatus, name="regularization_status"),
    )
    regularization_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    requested_check_in: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True),
    )
    requested_check_out: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True),
    )
    regularization_requested_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True),
    )
    regularization_reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    regularization_reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True),
    )
    regularization_comments: Mapped[Optional[str]] = mapped_column(sa.Text)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    def __repr__(self) -> str:
        return f"<AttendanceDayRecord {self.employee_id} {self.date} {self.status.value}>"
