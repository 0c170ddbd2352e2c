import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base


class ProfileRole(enum.Enum):
    ADMIN = "ADMIN"
    SECRETARY = "SECRETARY"
    STAFF = "STAFF"


class Profile(Base):
    """One row per identity-provider account; ``id`` is the provider's user id."""

    __tablename__ = "profiles"
    __table_args__ = (
        Index("ix_profiles_full_name", "full_name"),
        Index("ix_profiles_department", "department"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    full_name: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[ProfileRole] = mapped_column(
        Enum(ProfileRole), nullable=False, default=ProfileRole.STAFF
    )
    department: Mapped[str | None] = mapped_column(String(120))
    email: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
