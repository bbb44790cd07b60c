"""Core HR Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Response / *Detail → response bodies (read)
  - *Brief / *ListItem → compact read representations
"""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from dayflow.common.constants import (
    CurrentAttendanceStatus,
    Department,
    EmploymentStatus,
    EmploymentType,
    GenderType,
    UserRole,
)


# ═════════════════════════════════════════════════════════════════════
# Shared / embedded
# ═════════════════════════════════════════════════════════════════════


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in attendance, leave and payroll responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    department: str
    designation: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Employee — write schemas
# ═════════════════════════════════════════════════════════════════════


class EmployeeCreate(BaseModel):
    """Payload for creating a new employee."""

    employee_code: str = Field(..., min_length=1, max_length=20)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None
    department: Department = Department.general
    designation: Optional[str] = Field(None, max_length=150)
    role: UserRole = UserRole.employee
    reporting_manager_id: Optional[uuid.UUID] = None
    employment_type: EmploymentType = EmploymentType.full_time
    join_date: date
    monthly_wage: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)

    @field_validator("email", mode="after")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class EmployeeUpdate(BaseModel):
    """Partial-update payload for an employee (all fields optional)."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None
    department: Optional[Department] = None
    designation: Optional[str] = Field(None, max_length=150)
    role: Optional[UserRole] = None
    reporting_manager_id: Optional[uuid.UUID] = None
    employment_type: Optional[EmploymentType] = None
    status: Optional[EmploymentStatus] = None
    is_active: Optional[bool] = None


class EmployeeSelfUpdate(BaseModel):
    """Fields an employee may change on their own profile.

    Job, role, status and manager stay with HR.
    """

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None


# ═════════════════════════════════════════════════════════════════════
# Employee — read schemas
# ═════════════════════════════════════════════════════════════════════


class EmployeeListItem(BaseModel):
    """Compact employee row for paginated list endpoints."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    email: str
    department: str
    designation: Optional[str] = None
    role: UserRole
    status: EmploymentStatus
    current_attendance_status: CurrentAttendanceStatus
    join_date: date
    is_active: bool


class EmployeeDetail(EmployeeListItem):
    """Full employee profile — returned by GET /employees/{id}."""

    phone: Optional[str] = None
    address: Optional[str] = None
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None
    reporting_manager_id: Optional[uuid.UUID] = None
    employment_type: EmploymentType
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EmployeeStats(BaseModel):
    """Headcount summary for the HR dashboard."""

    day: date
    total: int
    active: int
    by_department: dict[str, int]
    by_status: dict[str, int]
    attendance_today: dict[str, int]
