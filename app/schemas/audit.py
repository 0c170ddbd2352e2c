from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.models.audit import AuditAction


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    user_id: UUID | None = None
    action: AuditAction
    letter_id: UUID | None = None
    meta: dict[str, Any] | None = None
    actor_name: str | None = None
    actor_role: str | None = None
