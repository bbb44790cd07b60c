"""Common module — shared utilities for Dayflow HR."""

from dayflow.common.audit import AuditTrail, create_audit_entry
from dayflow.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    POLICY,
    AttendanceStatus,
    LeaveCategory,
    LeaveStatus,
    LeaveType,
    NotificationType,
    UserRole,
)
from dayflow.common.exceptions import (
    AlreadyCheckedIn,
    AlreadyCheckedOut,
    AppException,
    ConflictError,
    ForbiddenException,
    InsufficientBalance,
    InvalidTransition,
    NotCheckedIn,
    NotFoundException,
    OverlappingRequest,
    StorageConflict,
    ValidationException,
    register_exception_handlers,
)
from dayflow.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "AttendanceStatus",
    "LeaveCategory",
    "LeaveStatus",
    "LeaveType",
    "NotificationType",
    "UserRole",
    "POLICY",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AlreadyCheckedIn",
    "AlreadyCheckedOut",
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "InsufficientBalance",
    "InvalidTransition",
    "NotCheckedIn",
    "NotFoundException",
    "OverlappingRequest",
    "StorageConflict",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
