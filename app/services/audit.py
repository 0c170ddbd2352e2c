"""Append-only audit trail for registry and user-management actions."""

from __future__ import annotations

import enum
import logging
import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import ValidationError
from app.models.audit import AuditAction, AuditLogEntry
from app.models.profile import Profile
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)

_VALID_ACTIONS = {e.value for e in AuditAction}


def _sanitize_meta_value(v: Any) -> Any:
    if v is None:
        return None
    if isinstance(v, (str, int, float, bool)):
        return v
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, enum.Enum):
        return v.value
    if isinstance(v, uuid.UUID):
        return str(v)
    if isinstance(v, dict):
        return {str(k): _sanitize_meta_value(x) for k, x in v.items()}
    if isinstance(v, (list, tuple, set)):
        return [_sanitize_meta_value(x) for x in v]
    return str(v)


def _sanitize_meta(meta: dict[str, Any] | None) -> dict[str, Any] | None:
    if meta is None:
        return None
    return {str(k): _sanitize_meta_value(v) for k, v in meta.items()}


class AuditLog:
    @staticmethod
    def record(
        db: Session,
        actor_id: str | uuid.UUID | None,
        action: AuditAction,
        letter_id: str | uuid.UUID | None = None,
        meta: dict[str, Any] | None = None,
    ) -> AuditLogEntry | None:
        """Append one entry after the primary operation has committed.

        Never raises: a failed write is rolled back and logged so the caller's
        already-committed work is reported as successful.
        """
        try:
            entry = AuditLogEntry(
                user_id=actor_id,
                action=action,
                letter_id=letter_id,
                meta=_sanitize_meta(meta),
            )
            db.add(entry)
            db.commit()
            logger.debug("Audit %s by %s on %s", action.value, actor_id, letter_id)
            return entry
        except Exception as e:
            db.rollback()
            logger.exception("Failed to write audit entry %s: %s", action.value, e)
            return None

    @staticmethod
    def list(
        db: Session,
        action: str | None = None,
        letter_id: uuid.UUID | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        limit = min(limit or settings.audit_max_page_size, settings.audit_max_page_size)
        stmt = select(AuditLogEntry)
        if action:
            if action not in _VALID_ACTIONS:
                raise ValidationError(
                    f"Invalid action. Allowed: {sorted(_VALID_ACTIONS)}"
                )
            stmt = stmt.where(AuditLogEntry.action == AuditAction(action))
        if letter_id:
            stmt = stmt.where(
                AuditLogEntry.letter_id == coerce_uuid(letter_id, "letter_id")
            )
        stmt = stmt.order_by(AuditLogEntry.created_at.desc()).limit(limit)
        entries = db.scalars(stmt).all()

        actor_ids = {e.user_id for e in entries if e.user_id}
        people: dict[uuid.UUID, Profile] = {}
        if actor_ids:
            rows = db.scalars(select(Profile).where(Profile.id.in_(actor_ids))).all()
            people = {p.id: p for p in rows}

        results = []
        for entry in entries:
            actor = people.get(entry.user_id) if entry.user_id else None
            results.append(
                {
                    "id": entry.id,
                    "created_at": entry.created_at,
                    "user_id": entry.user_id,
                    "action": entry.action,
                    "letter_id": entry.letter_id,
                    "meta": entry.meta,
                    "actor_name": actor.full_name if actor else None,
                    "actor_role": actor.role.value if actor else None,
                }
            )
        return results


audit_log = AuditLog()
