from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel

from app.models.profile import ProfileRole


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"
    expires_in: int | None = None


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str


class MeResponse(BaseModel):
    user_id: UUID
    email: str | None = None
    full_name: str | None = None
    role: ProfileRole
    department: str | None = None
