"""Auth Pydantic schemas for request / response validation."""


import uuid
from typing import Optional

from pydantic import BaseModel


class GoogleAuthRequest(BaseModel):
    code: str
    # Falls back to settings.GOOGLE_REDIRECT_URI
    redirect_uri: Optional[str] = None


class UserInfo(BaseModel):
    id: uuid.UUID
    employee_code: str
    display_name: str
    email: str
    role: str
    department: str
    designation: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserInfo


class MeResponse(UserInfo):
    permissions: list[str]
    current_attendance_status: str
