"""Enums and constants for Dayflow — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Employee / Core HR ──────────────────────────────────────────────

class Department(str, enum.Enum):
    engineering = "Engineering"
    product = "Product"
    design = "Design"
    human_resources = "Human Resources"
    finance = "Finance"
    marketing = "Marketing"
    sales = "Sales"
    operations = "Operations"
    analytics = "Analytics"
    general = "General"
    other = "Other"


class EmploymentStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    on_leave = "on_leave"
    terminated = "terminated"


class EmploymentType(str, enum.Enum):
    full_time = "full_time"
    part_time = "part_time"
    contract = "contract"
    intern = "intern"


class GenderType(str, enum.Enum):
    male = "male"
    female = "female"
    other = "other"
    undisclosed = "undisclosed"


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    hr = "hr"
    admin = "admin"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveType(str, enum.Enum):
    paid = "paid"
    vacation = "vacation"
    annual = "annual"
    sick = "sick"
    personal = "personal"
    casual = "casual"
    unpaid = "unpaid"
    maternity = "maternity"
    paternity = "paternity"
    bereavement = "bereavement"
    other = "other"


class LeaveCategory(str, enum.Enum):
    vacation = "vacation"
    sick = "sick"
    personal = "personal"
    unpaid = "unpaid"


class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class HalfDayType(str, enum.Enum):
    first_half = "first_half"
    second_half = "second_half"


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceStatus(str, enum.Enum):
    present = "present"
    absent = "absent"
    half_day = "half_day"
    leave = "leave"
    holiday = "holiday"
    weekend = "weekend"
    late = "late"


class CurrentAttendanceStatus(str, enum.Enum):
    """Snapshot shown on the employee directory card."""

    present = "present"
    absent = "absent"
    leave = "leave"
    not_checked_in = "not_checked_in"
    half_day = "half_day"
    late = "late"


class CheckMethod(str, enum.Enum):
    manual = "manual"
    biometric = "biometric"
    web = "web"


class RegularizationStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# ── Payroll ─────────────────────────────────────────────────────────

class PaymentStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    info = "info"
    action_required = "action_required"
    approval = "approval"
    reminder = "reminder"
    alert = "alert"
    celebration = "celebration"


# ── Authorization policy ────────────────────────────────────────────
# operation -> roles allowed to invoke it. Routers consult this once at
# the boundary; services never inspect roles.

_ALL = frozenset({UserRole.employee, UserRole.hr, UserRole.admin})
_STAFF = frozenset({UserRole.hr, UserRole.admin})
_ADMIN = frozenset({UserRole.admin})

POLICY: dict[str, frozenset[UserRole]] = {
    # Employees
    "employee:read_own": _ALL,
    "employee:read_all": _STAFF,
    "employee:create": _STAFF,
    "employee:update": _STAFF,
    "employee:update_own": _ALL,
    "employee:deactivate": _STAFF,
    "employee:stats": _STAFF,
    # Attendance
    "attendance:check": _ALL,
    "attendance:read_own": _ALL,
    "attendance:read_all": _STAFF,
    "attendance:mark": _STAFF,
    "attendance:regularize_request": _ALL,
    "attendance:regularize_decide": _STAFF,
    # Leave
    "leave:request": _ALL,
    "leave:read_own": _ALL,
    "leave:cancel_own": _ALL,
    "leave:read_all": _STAFF,
    "leave:decide": _STAFF,
    "leave:cancel_any": _STAFF,
    # Salary / payroll
    "salary:read_own": _ALL,
    "salary:read_all": _STAFF,
    "salary:update": _ADMIN,
    "payroll:read_own": _ALL,
    "payroll:read_all": _STAFF,
    "payroll:generate": _STAFF,
    "payroll:pay": _STAFF,
    # Notifications
    "notification:read_own": _ALL,
    "notification:run_scan": _ADMIN,
}

# ── Misc constants ──────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
