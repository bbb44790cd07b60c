"""Salary ORM models: SalaryConfiguration, Payslip.

SQLAlchemy 2.0 async-compatible models.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from dayflow.common.constants import PaymentStatus
from dayflow.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SalaryConfiguration(Base):
    """Versioned wage + percentage structure for one employee.

    Rows are never deleted. An update inserts a new ``is_current`` row and
    stamps ``superseded_at`` on the previous one.
    """

    __tablename__ = "salary_configurations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1)

    monthly_wage: Mapped[Decimal] = mapped_column(
        sa.Numeric(14, 2), nullable=False, default=Decimal("0"),
    )
    # Percentage of monthly wage
    basic_pct: Mapped[Decimal] = mapped_column(sa.Numeric(5, 2), nullable=False)
    # Percentages of basic
    hra_pct: Mapped[Decimal] = mapped_column(sa.Numeric(5, 2), nullable=False)
    standard_allowance_pct: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 2), nullable=False,
    )
    performance_bonus_pct: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 2), nullable=False,
    )
    lta_pct: Mapped[Decimal] = mapped_column(sa.Numeric(5, 2), nullable=False)
    # Deductions
    pf_employee_pct: Mapped[Decimal] = mapped_column(sa.Numeric(5, 2), nullable=False)
    pf_employer_pct: Mapped[Decimal] = mapped_column(sa.Numeric(5, 2), nullable=False)
    professional_tax: Mapped[Decimal] = mapped_column(
        sa.Numeric(10, 2), nullable=False,
    )
    currency: Mapped[str] = mapped_column(sa.String(3), nullable=False, default="INR")

    effective_from: Mapped[date] = mapped_column(sa.Date, nullable=False)
    is_current: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    superseded_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True),
    )
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )

    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "version", name="uq_salary_config_employee_version",
        ),
        sa.Index("ix_salary_config_employee_current", "employee_id", "is_current"),
        # At most one current configuration per employee
        sa.Index(
            "uq_salary_config_current",
            "employee_id",
            unique=True,
            postgresql_where=sa.text("is_current"),
            sqlite_where=sa.text("is_current"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<SalaryConfiguration employee_id={self.employee_id} "
            f"v{self.version} wage={self.monthly_wage}>"
        )


class Payslip(Base):
    """Monthly payroll snapshot — one per (employee, year, month)."""

    __tablename__ = "payslips"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    salary_configuration_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("salary_configurations.id"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    month: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    # Rounded breakdown snapshot (string amounts, JSON-safe)
    breakdown: Mapped[dict] = mapped_column(JSONB, nullable=False)
    gross_salary: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(
        sa.Numeric(14, 2), nullable=False,
    )
    net_salary: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False)

    # Attendance figures for the month
    working_days: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    present_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), nullable=False, default=Decimal("0"),
    )
    unpaid_leave_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), nullable=False, default=Decimal("0"),
    )

    # Payment
    payment_status: Mapped[PaymentStatus] = mapped_column(
        sa.Enum(PaymentStatus, name="payment_status"),
        nullable=False,
        default=PaymentStatus.pending,
    )
    payment_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    payment_method: Mapped[Optional[str]] = mapped_column(sa.String(50))
    transaction_id: Mapped[Optional[str]] = mapped_column(sa.String(100))
    remarks: Mapped[Optional[str]] = mapped_column(sa.Text)

    generated_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "year", "month", name="uq_payslip_employee_period",
        ),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_payslip_month"),
    )

    def __repr__(self) -> str:
        return f"<Payslip employee_id={self.employee_id} {self.year}-{self.month:02d}>"
