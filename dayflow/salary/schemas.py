"""Salary Pydantic v2 schemas — request/response validation.

Amounts are computed unrounded by the engine and quantized to two
places only here, at the presentation edge.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dayflow.common.constants import PaymentStatus
from dayflow.salary.engine import SalaryBreakdown, money

_PCT = dict(ge=0, le=100, max_digits=5, decimal_places=2)


# ═════════════════════════════════════════════════════════════════════
# Salary configuration
# ═════════════════════════════════════════════════════════════════════


class SalaryConfigurationOut(BaseModel):
    """One version of an employee's salary structure."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    version: int
    monthly_wage: Decimal
    basic_pct: Decimal
    hra_pct: Decimal
    standard_allowance_pct: Decimal
    performance_bonus_pct: Decimal
    lta_pct: Decimal
    pf_employee_pct: Decimal
    pf_employer_pct: Decimal
    professional_tax: Decimal
    currency: str
    effective_from: date
    is_current: bool
    superseded_at: Optional[datetime] = None
    updated_by: Optional[uuid.UUID] = None


class SalaryConfigurationUpdate(BaseModel):
    """Partial update; omitted fields keep their current values."""

    monthly_wage: Optional[Decimal] = Field(None, ge=0, max_digits=14, decimal_places=2)
    basic_pct: Optional[Decimal] = Field(None, **_PCT)
    hra_pct: Optional[Decimal] = Field(None, **_PCT)
    standard_allowance_pct: Optional[Decimal] = Field(None, **_PCT)
    performance_bonus_pct: Optional[Decimal] = Field(None, **_PCT)
    lta_pct: Optional[Decimal] = Field(None, **_PCT)
    pf_employee_pct: Optional[Decimal] = Field(None, **_PCT)
    pf_employer_pct: Optional[Decimal] = Field(None, **_PCT)
    professional_tax: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    effective_from: Optional[date] = None


# ═════════════════════════════════════════════════════════════════════
# Breakdown
# ═════════════════════════════════════════════════════════════════════


class SalaryBreakdownOut(BaseModel):
    """Monthly earnings and deductions derived from the current configuration."""

    employee_id: uuid.UUID
    configuration_id: uuid.UUID
    version: int
    effective_from: date
    currency: str
    monthly_wage: Decimal
    yearly_wage: Decimal
    basic_salary: Decimal
    hra: Decimal
    standard_allowance: Decimal
    performance_bonus: Decimal
    leave_travel_allowance: Decimal
    fixed_allowance: Decimal
    employee_pf: Decimal
    employer_pf: Decimal
    professional_tax: Decimal
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal

    @classmethod
    def build(cls, config: Any, breakdown: SalaryBreakdown) -> "SalaryBreakdownOut":
        values = breakdown.rounded()
        values.pop("over_budget", None)
        return cls(
            employee_id=config.employee_id,
            configuration_id=config.id,
            version=config.version,
            effective_from=config.effective_from,
            **values,
        )


# ═════════════════════════════════════════════════════════════════════
# Payslips
# ═════════════════════════════════════════════════════════════════════


class PayslipOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    salary_configuration_id: uuid.UUID
    year: int
    month: int
    breakdown: dict[str, Any]
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    working_days: int
    present_days: Decimal
    unpaid_leave_days: Decimal
    payment_status: PaymentStatus
    payment_date: Optional[date] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    remarks: Optional[str] = None
    generated_by: Optional[uuid.UUID] = None

    @field_validator("gross_salary", "total_deductions", "net_salary", mode="after")
    @classmethod
    def _round_money(cls, v: Decimal) -> Decimal:
        return money(Decimal(v))


class PayrollGenerateRequest(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    employee_ids: Optional[List[uuid.UUID]] = None


class PayrollRunResult(BaseModel):
    year: int
    month: int
    working_days: int
    generated: List[PayslipOut]
    skipped: List[uuid.UUID] = []


class PaymentRequest(BaseModel):
    payment_method: str = Field(default="bank-transfer", max_length=50)
    transaction_id: Optional[str] = Field(None, max_length=100)
    payment_date: Optional[date] = None
    remarks: Optional[str] = Field(None, max_length=1000)


class PayrollMonthStat(BaseModel):
    month: int
    status: PaymentStatus
    count: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal


class PayrollStatsResponse(BaseModel):
    year: int
    monthly: List[PayrollMonthStat]
    paid_count: int
    paid_gross: Decimal
    paid_deductions: Decimal
    paid_net: Decimal
