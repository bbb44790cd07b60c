"""Auth dependencies — JWT validation, policy enforcement."""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.auth.models import UserSession
from dayflow.common.constants import POLICY, UserRole
from dayflow.common.exceptions import ForbiddenException
from dayflow.config import settings
from dayflow.core_hr.models import Employee
from dayflow.database import get_db


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


def is_allowed(role: UserRole, operation: str) -> bool:
    """Look *operation* up in the policy table. Unknown operations are denied."""
    return role in POLICY.get(operation, frozenset())


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Employee:
    """Validate JWT, verify session, return the authenticated Employee."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == _hash_token(token),
            UserSession.is_revoked.is_(False),
            UserSession.expires_at > datetime.now(timezone.utc),
        ),
    )
    if result.scalars().first() is None:
        raise HTTPException(status_code=401, detail="Session invalid or expired.")

    try:
        employee_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    emp_result = await db.execute(
        select(Employee).where(Employee.id == employee_id, Employee.is_active.is_(True)),
    )
    employee = emp_result.scalars().first()
    if employee is None:
        raise HTTPException(status_code=401, detail="User account is inactive or not found.")

    # The stored role is authoritative; a role change takes effect immediately
    request.state.user_role = employee.role
    request.state.token_hash = _hash_token(token)
    return employee


# ── Policy dependency ───────────────────────────────────────────────

def require_permission(operation: str) -> Callable:
    """Return a FastAPI dependency that enforces *operation* from ``POLICY``."""
    if operation not in POLICY:
        raise KeyError(f"Unknown operation '{operation}'")

    async def _check(
        request: Request,
        employee: Employee = Depends(get_current_user),
    ) -> Employee:
        user_role: UserRole = request.state.user_role
        if not is_allowed(user_role, operation):
            raise ForbiddenException(
                detail=f"Operation '{operation}' is not permitted for role '{user_role.value}'.",
            )
        return employee

    return _check
