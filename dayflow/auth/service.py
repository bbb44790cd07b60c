"""Auth service — Google OAuth exchange, JWT issue, session lifecycle."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx
from jose import jwt
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.auth.dependencies import _hash_token
from dayflow.auth.models import UserSession
from dayflow.common.constants import UserRole
from dayflow.common.exceptions import ForbiddenException, NotFoundException
from dayflow.config import settings
from dayflow.core_hr.models import Employee

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


# ── Google OAuth ────────────────────────────────────────────────────

async def verify_google_token(code: str, redirect_uri: str) -> dict[str, Any]:
    """Exchange a Google authorization code for the user's identity.

    Returns dict with keys: email, name, google_id.
    """
    async with httpx.AsyncClient(timeout=15) as client:
        token_resp = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": settings.GOOGLE_CLIENT_ID,
                "client_secret": settings.GOOGLE_CLIENT_SECRET,
                "code": code,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
        )
        token_data = token_resp.json()
        if token_resp.status_code != 200 or "access_token" not in token_data:
            logger.warning("Google token exchange failed: %s", token_data.get("error"))
            raise ForbiddenException(
                detail=f"Google token exchange failed: {token_data.get('error_description', 'unknown error')}",
            )

        info_resp = await client.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {token_data['access_token']}"},
        )
        if info_resp.status_code != 200:
            raise ForbiddenException(detail="Failed to fetch Google user info.")
        info = info_resp.json()

    return {
        "email": info["email"],
        "name": info.get("name", ""),
        "google_id": info["id"],
    }


def validate_domain(email: str) -> None:
    if not email.lower().endswith(f"@{settings.ALLOWED_DOMAIN}"):
        raise ForbiddenException(
            detail=f"Only @{settings.ALLOWED_DOMAIN} accounts are permitted.",
        )


async def get_employee_by_email(db: AsyncSession, email: str) -> Employee:
    """Return an active employee by email, or raise 404."""
    result = await db.execute(
        select(Employee).where(Employee.email == email.lower(), Employee.is_active.is_(True)),
    )
    employee = result.scalars().first()
    if employee is None:
        raise NotFoundException(entity_type="Employee", entity_id=email)
    return employee


# ── JWT / sessions ──────────────────────────────────────────────────

def create_access_token(employee_id: uuid.UUID, role: UserRole) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


async def issue_session(
    db: AsyncSession,
    employee: Employee,
    *,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> tuple[str, int]:
    """Create an access token and persist its session row."""
    token, expires_in = create_access_token(employee.id, employee.role)
    db.add(
        UserSession(
            employee_id=employee.id,
            token_hash=_hash_token(token),
            ip_address=ip,
            user_agent=user_agent,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )
    )
    await db.flush()
    logger.info("Session issued for employee=%s", employee.id)
    return token, expires_in


async def revoke_session(db: AsyncSession, token_hash: str) -> bool:
    """Mark a session as revoked by its token hash."""
    result = await db.execute(
        update(UserSession)
        .where(UserSession.token_hash == token_hash, UserSession.is_revoked.is_(False))
        .values(is_revoked=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0
