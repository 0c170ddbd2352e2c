from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.letter import Confidentiality, LetterDirection, LetterStatus
from app.models.profile import ProfileRole


# ---------------------------------------------------------------------------
# Letter
# ---------------------------------------------------------------------------


class LetterCreate(BaseModel):
    # Required fields are checked by the registry so that a missing value is a
    # 400 with a readable message rather than a schema error.
    ref_no: str | None = Field(default=None, max_length=120)
    direction: str = "INCOMING"
    status: str = "RECEIVED"
    confidentiality: str = "INTERNAL"
    date_received: date | None = None
    date_on_letter: date | None = None
    sender_name: str | None = Field(default=None, max_length=255)
    sender_org: str | None = Field(default=None, max_length=255)
    recipient_department: str | None = Field(default=None, max_length=120)
    subject: str | None = Field(default=None, max_length=500)
    summary: str | None = None
    category: str | None = Field(default=None, max_length=120)
    tags: list[str] = Field(default_factory=list)
    recipient_user_ids: list[UUID] = Field(default_factory=list)
    file_bucket: str | None = None
    file_path: str | None = None
    file_name: str | None = None
    mime_type: str | None = None


class LetterUpdate(BaseModel):
    ref_no: str | None = Field(default=None, max_length=120)
    direction: str | None = None
    status: str | None = None
    confidentiality: str | None = None
    date_received: date | None = None
    date_on_letter: date | None = None
    sender_name: str | None = Field(default=None, max_length=255)
    sender_org: str | None = Field(default=None, max_length=255)
    recipient_department: str | None = Field(default=None, max_length=120)
    subject: str | None = Field(default=None, max_length=500)
    summary: str | None = None
    category: str | None = Field(default=None, max_length=120)
    tags: list[str] | None = None
    recipient_user_ids: list[UUID] | None = None


class LetterRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    ref_no: str
    direction: LetterDirection
    status: LetterStatus
    confidentiality: Confidentiality
    date_received: date
    date_on_letter: date | None = None
    sender_name: str
    sender_org: str | None = None
    recipient_department: str | None = None
    subject: str
    summary: str | None = None
    category: str | None = None
    tags: list[str] | None = None
    file_bucket: str | None = None
    file_path: str | None = None
    file_name: str | None = None
    mime_type: str | None = None
    created_by: UUID | None = None
    created_at: datetime
    updated_at: datetime


class LetterCreated(BaseModel):
    ok: bool = True
    id: UUID
    ref_no: str


class LetterStats(BaseModel):
    total: int
    incoming: int
    outgoing: int
    archived: int


# ---------------------------------------------------------------------------
# Reference numbers and files
# ---------------------------------------------------------------------------


class NextRefRequest(BaseModel):
    direction: str = "INCOMING"
    year: int | None = None


class NextRefResponse(BaseModel):
    ref_no: str


class SignedURLRequest(BaseModel):
    letter_id: UUID


class SignedURLResponse(BaseModel):
    url: str
    expires_in: int


class StoredFile(BaseModel):
    file_bucket: str
    file_path: str
    file_name: str
    mime_type: str


# ---------------------------------------------------------------------------
# Recipients
# ---------------------------------------------------------------------------


class RecipientsAdd(BaseModel):
    letter_id: UUID
    user_ids: list[UUID] = Field(min_length=1)


class RecipientRemove(BaseModel):
    letter_id: UUID
    user_id: UUID


class RecipientsClear(BaseModel):
    letter_id: UUID


class RecipientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str | None = None
    department: str | None = None
    role: ProfileRole


class RecipientsResponse(BaseModel):
    recipients: list[RecipientRead]


class LetterDetail(BaseModel):
    letter: LetterRead
    recipients: list[RecipientRead]
    can_edit: bool
