"""Custom exceptions and RFC 7807 Problem Detail error handlers."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

BASE_ERROR_URI = "https://hr.dayflow.io/errors"


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    """404 — entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )


class ConflictError(AppException):
    """409 — unique-constraint / duplicate."""

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(
            status_code=409,
            error_type="conflict",
            title="Conflict",
            detail=f"An entry with {field}='{value}' already exists.",
            errors={field: [f"'{value}' is already in use."]},
        )


class ForbiddenException(AppException):
    """403 — insufficient permissions."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(
            status_code=403,
            error_type="forbidden",
            title="Forbidden",
            detail=detail,
        )


class ValidationException(AppException):
    """422 — business-logic validation failures."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=422,
            error_type="validation-error",
            title="Validation Error",
            detail="One or more fields failed validation.",
            errors=errors,
        )


# ── Leave workflow ──────────────────────────────────────────────────

class InvalidTransition(AppException):
    """409 — requested leave status change is not allowed from the current one."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            status_code=409,
            error_type="invalid-transition",
            title="Invalid Status Transition",
            detail=f"Cannot move a leave request from '{current}' to '{requested}'.",
            errors={"status": [f"{current} -> {requested} is not permitted."]},
        )


class OverlappingRequest(AppException):
    """409 — dates collide with an existing pending or approved request."""

    def __init__(self, conflicting_id: Any) -> None:
        self.conflicting_id = conflicting_id
        super().__init__(
            status_code=409,
            error_type="overlapping-request",
            title="Overlapping Leave Request",
            detail=(
                "The requested dates overlap with leave request "
                f"'{conflicting_id}'."
            ),
            errors={"conflicting_request_id": [str(conflicting_id)]},
        )


class InsufficientBalance(AppException):
    """409 — not enough leave left in the category to cover the request."""

    def __init__(self, category: str, requested: Decimal, remaining: Decimal) -> None:
        self.category = category
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            status_code=409,
            error_type="insufficient-balance",
            title="Insufficient Leave Balance",
            detail=(
                f"Requested {requested} day(s) of {category} leave "
                f"but only {remaining} remain."
            ),
            errors={
                "category": [category],
                "requested": [str(requested)],
                "remaining": [str(remaining)],
            },
        )


class StorageConflict(AppException):
    """409 — a conditional write matched nothing because the row moved on.

    Transient: the caller may re-read and retry.
    """

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=409,
            error_type="storage-conflict",
            title="Concurrent Modification",
            detail=(
                f"{entity_type} '{entity_id}' was modified concurrently. "
                "Reload and try again."
            ),
        )


# ── Attendance flow ─────────────────────────────────────────────────

class AlreadyCheckedIn(AppException):
    def __init__(self, day: Any) -> None:
        super().__init__(
            status_code=409,
            error_type="already-checked-in",
            title="Already Checked In",
            detail=f"Already checked in for {day}.",
        )


class NotCheckedIn(AppException):
    def __init__(self, day: Any) -> None:
        super().__init__(
            status_code=400,
            error_type="not-checked-in",
            title="Not Checked In",
            detail=f"No check-in recorded for {day}.",
        )


class AlreadyCheckedOut(AppException):
    def __init__(self, day: Any) -> None:
        super().__init__(
            status_code=409,
            error_type="already-checked-out",
            title="Already Checked Out",
            detail=f"Already checked out for {day}.",
        )


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.errors:
        body["errors"] = exc.errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
        media_type="application/problem+json",
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{BASE_ERROR_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
