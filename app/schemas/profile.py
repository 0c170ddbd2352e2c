from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.models.profile import ProfileRole


class ProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str | None = None
    role: ProfileRole
    department: str | None = None
    email: str | None = None
    created_at: datetime


class UserSearchResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str | None = None
    department: str | None = None
    role: ProfileRole


class UserSearchResponse(BaseModel):
    users: list[UserSearchResult]


# ---------------------------------------------------------------------------
# Admin user management
# ---------------------------------------------------------------------------


class UserCreateRequest(BaseModel):
    email: str = ""
    password: str = ""
    full_name: str | None = None
    department: str | None = None
    role: str = "STAFF"


class UserCreated(BaseModel):
    ok: bool = True
    user_id: UUID


class UserDeleteRequest(BaseModel):
    user_id: UUID


class SetRoleRequest(BaseModel):
    user_id: UUID
    role: str
    department: str | None = None
    full_name: str | None = None


class UpdateEmailRequest(BaseModel):
    user_id: UUID
    email: str = ""
