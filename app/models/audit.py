import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base


class AuditAction(enum.Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    VIEWED = "VIEWED"
    DOWNLOADED = "DOWNLOADED"
    SCAN_REPLACED = "SCAN_REPLACED"
    USER_CREATED = "USER_CREATED"
    USER_DELETED = "USER_DELETED"
    USER_EMAIL_UPDATED = "USER_EMAIL_UPDATED"
    ROLE_UPDATED = "ROLE_UPDATED"


class AuditLogEntry(Base):
    """Append-only. Rows are never updated or deleted by the application."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_created_at", "created_at"),
        Index("ix_audit_logs_action", "action"),
        Index("ix_audit_logs_letter_id", "letter_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL")
    )
    action: Mapped[AuditAction] = mapped_column(Enum(AuditAction), nullable=False)
    letter_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("letters.id", ondelete="SET NULL")
    )
    meta: Mapped[dict | None] = mapped_column(JSON)
