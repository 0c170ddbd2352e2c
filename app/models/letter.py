import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class LetterDirection(enum.Enum):
    INCOMING = "INCOMING"
    OUTGOING = "OUTGOING"


class LetterStatus(enum.Enum):
    RECEIVED = "RECEIVED"
    SCANNED = "SCANNED"
    ASSIGNED = "ASSIGNED"
    ARCHIVED = "ARCHIVED"


class Confidentiality(enum.Enum):
    PUBLIC = "PUBLIC"
    INTERNAL = "INTERNAL"
    CONFIDENTIAL = "CONFIDENTIAL"


# ---------------------------------------------------------------------------
# Letters
# ---------------------------------------------------------------------------


class Letter(Base):
    __tablename__ = "letters"
    __table_args__ = (
        UniqueConstraint("ref_no", name="uq_letters_ref_no"),
        Index("ix_letters_created_at", "created_at"),
        Index("ix_letters_direction", "direction"),
        Index("ix_letters_status", "status"),
        Index("ix_letters_confidentiality", "confidentiality"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    ref_no: Mapped[str] = mapped_column(String(120), nullable=False)
    direction: Mapped[LetterDirection] = mapped_column(
        Enum(LetterDirection), nullable=False, default=LetterDirection.INCOMING
    )
    status: Mapped[LetterStatus] = mapped_column(
        Enum(LetterStatus), nullable=False, default=LetterStatus.RECEIVED
    )
    confidentiality: Mapped[Confidentiality] = mapped_column(
        Enum(Confidentiality), nullable=False, default=Confidentiality.INTERNAL
    )

    date_received: Mapped[date] = mapped_column(Date, nullable=False)
    date_on_letter: Mapped[date | None] = mapped_column(Date)
    sender_name: Mapped[str] = mapped_column(String(255), nullable=False)
    sender_org: Mapped[str | None] = mapped_column(String(255))
    recipient_department: Mapped[str | None] = mapped_column(String(120))
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    summary: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(String(120))
    tags: Mapped[list | None] = mapped_column(JSON, default=list)

    # Scan held in the blob store
    file_bucket: Mapped[str | None] = mapped_column(String(120))
    file_path: Mapped[str | None] = mapped_column(String(1024))
    file_name: Mapped[str | None] = mapped_column(String(500))
    mime_type: Mapped[str | None] = mapped_column(String(255))

    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    creator = relationship("Profile", foreign_keys=[created_by])
    recipients = relationship(
        "LetterRecipient",
        back_populates="letter",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class LetterRecipient(Base):
    """Grants one profile visibility into a CONFIDENTIAL letter."""

    __tablename__ = "letter_recipients"
    __table_args__ = (
        UniqueConstraint("letter_id", "user_id", name="uq_letter_recipients_pair"),
        Index("ix_letter_recipients_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    letter_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("letters.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    letter = relationship("Letter", back_populates="recipients")
    user = relationship("Profile", foreign_keys=[user_id])
