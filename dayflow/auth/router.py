"""Auth router — Google sign-in, logout, current user profile."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.auth.dependencies import get_current_user, is_allowed
from dayflow.auth.schemas import GoogleAuthRequest, MeResponse, TokenResponse, UserInfo
from dayflow.auth.service import (
    get_employee_by_email,
    issue_session,
    revoke_session,
    validate_domain,
    verify_google_token,
)
from dayflow.common.audit import create_audit_entry
from dayflow.common.constants import POLICY
from dayflow.common.rate_limit import AUTH_LIMIT, limiter
from dayflow.config import settings
from dayflow.core_hr.models import Employee
from dayflow.database import get_db

router = APIRouter(prefix="", tags=["auth"])


def _user_info(employee: Employee) -> dict:
    return {
        "id": employee.id,
        "employee_code": employee.employee_code,
        "display_name": employee.full_name,
        "email": employee.email,
        "role": employee.role.value,
        "department": employee.department,
        "designation": employee.designation,
    }


# ── POST /google — Google OAuth callback ────────────────────────────

@router.post("/google", response_model=TokenResponse)
@limiter.limit(AUTH_LIMIT)
async def google_auth(
    body: GoogleAuthRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    google_info = await verify_google_token(
        body.code, body.redirect_uri or settings.GOOGLE_REDIRECT_URI,
    )
    validate_domain(google_info["email"])
    employee = await get_employee_by_email(db, google_info["email"])

    if not employee.google_id:
        employee.google_id = google_info["google_id"]
        await db.flush()

    ip = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent")
    access_token, expires_in = await issue_session(
        db, employee, ip=ip, user_agent=user_agent,
    )

    await create_audit_entry(
        db,
        action="login",
        entity_type="user_session",
        entity_id=employee.id,
        actor_id=employee.id,
        new_values={"ip": ip, "user_agent": user_agent},
    )

    return TokenResponse(
        access_token=access_token,
        expires_in=expires_in,
        user=UserInfo(**_user_info(employee)),
    )


# ── POST /logout — Revoke current session ──────────────────────────

@router.post("/logout")
async def logout(
    request: Request,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await revoke_session(db, request.state.token_hash)
    await create_audit_entry(
        db,
        action="logout",
        entity_type="user_session",
        entity_id=employee.id,
        actor_id=employee.id,
    )
    return {"message": "Logged out successfully"}


# ── GET /me — Current user profile ─────────────────────────────────

@router.get("/me", response_model=MeResponse)
async def me(
    request: Request,
    employee: Employee = Depends(get_current_user),
):
    role = request.state.user_role
    return MeResponse(
        **_user_info(employee),
        permissions=sorted(op for op in POLICY if is_allowed(role, op)),
        current_attendance_status=employee.current_attendance_status.value,
    )
