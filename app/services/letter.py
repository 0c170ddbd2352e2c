from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import exists, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from app.models.audit import AuditAction
from app.models.letter import (
    Confidentiality,
    Letter,
    LetterDirection,
    LetterStatus,
)
from app.schemas.letter import LetterCreate, LetterUpdate
from app.services.access import (
    RequestContext,
    can_edit,
    can_view,
    visible_letters_clause,
)
from app.services.audit import AuditLog
from app.services.common import apply_pagination, clean_str, coerce_uuid, escape_like
from app.services.letter_recipient import (
    add_rows,
    clear_rows,
    dedupe_ids,
    ensure_profiles_exist,
    recipient_count,
    recipient_profiles,
)
from app.services.letter_storage import (
    BlobStore,
    BlobStoreError,
    StoredBlob,
    discard_blob,
    intake_path,
    intake_prefix,
    sanitize_ref_no,
    scan_path,
    validate_scan,
)
from app.services.ref_numbers import allocate_next_ref_no
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

_VALID_DIRECTIONS = {e.value for e in LetterDirection}
_VALID_STATUSES = {e.value for e in LetterStatus}
_VALID_CONFIDENTIALITY = {e.value for e in Confidentiality}

_REQUIRED_TEXT = ("sender_name", "subject")
_OPTIONAL_TEXT = ("sender_org", "recipient_department", "summary", "category")


def _parse_enum(enum_cls, allowed: set[str], value, field: str):
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, enum_cls):
        return value
    normalized = str(value).strip().upper()
    if normalized not in allowed:
        raise ValidationError(f"Invalid {field}. Allowed: {sorted(allowed)}")
    return enum_cls(normalized)


def _clean_tags(tags) -> list[str]:
    cleaned: list[str] = []
    for tag in tags or []:
        value = clean_str(tag)
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


def _require_editor(actor: RequestContext, letter: Letter | None = None) -> None:
    if not can_edit(actor, letter):
        raise ForbiddenError("Only ADMIN or SECRETARY can modify letters")


def _ref_no_taken(db: Session, ref_no: str) -> bool:
    return bool(db.scalar(select(exists().where(Letter.ref_no == ref_no))))


def _check_confidentiality(
    confidentiality: Confidentiality,
    recipient_department: str | None,
    recipient_ids: list[uuid.UUID] | None,
    existing_recipients: int = 0,
) -> None:
    if confidentiality == Confidentiality.INTERNAL and not recipient_department:
        raise ValidationError("recipient_department is required for INTERNAL letters")
    if confidentiality == Confidentiality.CONFIDENTIAL:
        count = len(recipient_ids) if recipient_ids is not None else existing_recipients
        if count == 0:
            raise ValidationError(
                "Add at least one recipient for CONFIDENTIAL letters"
            )
    elif recipient_ids:
        raise ValidationError("Recipients can only be set on CONFIDENTIAL letters")


class Letters(ListResponseMixin):
    @staticmethod
    def create(
        db: Session,
        payload: LetterCreate,
        actor: RequestContext,
        blobs: BlobStore | None = None,
    ) -> Letter:
        _require_editor(actor)

        sender_name = clean_str(payload.sender_name)
        subject = clean_str(payload.subject)
        if not sender_name:
            raise ValidationError("sender_name is required")
        if not subject:
            raise ValidationError("subject is required")
        if payload.date_received is None:
            raise ValidationError("date_received is required")

        direction = _parse_enum(
            LetterDirection, _VALID_DIRECTIONS, payload.direction, "direction"
        )
        status = _parse_enum(LetterStatus, _VALID_STATUSES, payload.status, "status")
        confidentiality = _parse_enum(
            Confidentiality,
            _VALID_CONFIDENTIALITY,
            payload.confidentiality,
            "confidentiality",
        )
        recipient_department = clean_str(payload.recipient_department)
        recipient_ids = dedupe_ids(payload.recipient_user_ids)
        _check_confidentiality(confidentiality, recipient_department, recipient_ids)
        ensure_profiles_exist(db, recipient_ids)

        staged_path = clean_str(payload.file_path)
        if staged_path and not staged_path.startswith(intake_prefix(actor.user_id)):
            raise ValidationError("file_path must be one of your own intake uploads")

        given_ref = clean_str(payload.ref_no)
        attempts = 1 if given_ref else max(settings.ref_no_max_attempts, 1)
        letter = None
        ref_no = None
        for attempt in range(1, attempts + 1):
            ref_no = given_ref or allocate_next_ref_no(
                db, direction, payload.date_received.year
            )
            letter = Letter(
                ref_no=ref_no,
                direction=direction,
                status=status,
                confidentiality=confidentiality,
                date_received=payload.date_received,
                date_on_letter=payload.date_on_letter,
                sender_name=sender_name,
                sender_org=clean_str(payload.sender_org),
                recipient_department=recipient_department,
                subject=subject,
                summary=clean_str(payload.summary),
                category=clean_str(payload.category),
                tags=_clean_tags(payload.tags),
                file_bucket=clean_str(payload.file_bucket),
                file_path=staged_path,
                file_name=clean_str(payload.file_name),
                mime_type=clean_str(payload.mime_type),
                created_by=actor.user_id,
            )
            db.add(letter)
            try:
                db.commit()
                break
            except IntegrityError as e:
                db.rollback()
                if not _ref_no_taken(db, ref_no):
                    raise UpstreamError(f"Failed to create letter: {e.orig}")
                if given_ref:
                    raise ConflictError(f"Reference number {ref_no} already exists")
                logger.warning(
                    "Reference number %s taken concurrently (attempt %d/%d)",
                    ref_no,
                    attempt,
                    attempts,
                )
            except SQLAlchemyError as e:
                db.rollback()
                raise UpstreamError(f"Failed to create letter: {e}")
        else:
            raise ConflictError(
                f"Could not allocate a unique reference number after {attempts} attempts"
            )

        letter_id = letter.id
        if confidentiality == Confidentiality.CONFIDENTIAL:
            try:
                Letters._insert_recipients(db, letter_id, recipient_ids)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                Letters._compensate_create(db, letter_id)
                raise UpstreamError(f"Failed to save recipients: {e}")

        db.refresh(letter)
        if staged_path and blobs is not None:
            Letters._promote_intake(db, blobs, letter)
        logger.info("Created letter %s (%s)", letter_id, ref_no)
        AuditLog.record(
            db, actor.user_id, AuditAction.CREATED, letter_id, {"ref_no": ref_no}
        )
        return letter

    @staticmethod
    def _promote_intake(db: Session, blobs: BlobStore, letter: Letter) -> None:
        """Move a staged intake scan to the scan path of the final ref_no.

        On failure the letter keeps pointing at the staged object, which stays
        readable.
        """
        staged = letter.file_path
        try:
            blob = blobs.download(staged)
            final = scan_path(letter.ref_no, blob.content_type)
            blobs.upload(final, blob.data, blob.content_type)
        except BlobStoreError:
            logger.warning(
                "Could not move intake scan %s for letter %s", staged, letter.id
            )
            return
        letter.file_bucket = blobs.bucket
        letter.file_path = final
        letter.mime_type = blob.content_type
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not record moved scan for letter %s", letter.id)
            discard_blob(blobs, final)
            return
        db.refresh(letter)
        discard_blob(blobs, staged)

    @staticmethod
    def _insert_recipients(
        db: Session, letter_id: uuid.UUID, user_ids: list[uuid.UUID]
    ) -> None:
        add_rows(db, letter_id, user_ids)

    @staticmethod
    def _compensate_create(db: Session, letter_id: uuid.UUID) -> None:
        # No confidential letter may outlive a failed grant insert.
        try:
            letter = db.get(Letter, letter_id)
            if letter is not None:
                db.delete(letter)
                db.commit()
            logger.warning("Rolled back letter %s after recipient failure", letter_id)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Compensating delete failed for letter %s", letter_id)

    @staticmethod
    def _get_letter(db: Session, letter_id) -> Letter:
        letter = db.get(Letter, coerce_uuid(letter_id, "letter_id"))
        if not letter:
            raise NotFoundError("Letter not found")
        return letter

    @staticmethod
    def get(db: Session, letter_id, actor: RequestContext) -> Letter:
        letter = Letters._get_letter(db, letter_id)
        # Invisible letters are indistinguishable from missing ones.
        if not can_view(db, actor, letter):
            raise NotFoundError("Letter not found")
        return letter

    @staticmethod
    def view(db: Session, letter_id, actor: RequestContext) -> dict:
        letter = Letters.get(db, letter_id, actor)
        recipients = []
        if letter.confidentiality == Confidentiality.CONFIDENTIAL:
            recipients = recipient_profiles(db, letter.id)
        editable = can_edit(actor, letter)
        AuditLog.record(
            db,
            actor.user_id,
            AuditAction.VIEWED,
            letter.id,
            {"ref_no": letter.ref_no},
        )
        return {"letter": letter, "recipients": recipients, "can_edit": editable}

    @staticmethod
    def list(
        db: Session,
        actor: RequestContext,
        direction: str | None = None,
        status: str | None = None,
        confidentiality: str | None = None,
        q: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Letter]:
        stmt = select(Letter).where(visible_letters_clause(actor))
        if direction:
            stmt = stmt.where(
                Letter.direction
                == _parse_enum(LetterDirection, _VALID_DIRECTIONS, direction, "direction")
            )
        if status:
            stmt = stmt.where(
                Letter.status
                == _parse_enum(LetterStatus, _VALID_STATUSES, status, "status")
            )
        if confidentiality:
            stmt = stmt.where(
                Letter.confidentiality
                == _parse_enum(
                    Confidentiality,
                    _VALID_CONFIDENTIALITY,
                    confidentiality,
                    "confidentiality",
                )
            )
        text = clean_str(q)
        if text:
            pattern = f"%{escape_like(text)}%"
            stmt = stmt.where(
                or_(
                    Letter.ref_no.ilike(pattern, escape="\\"),
                    Letter.sender_name.ilike(pattern, escape="\\"),
                    Letter.subject.ilike(pattern, escape="\\"),
                    Letter.recipient_department.ilike(pattern, escape="\\"),
                )
            )
        limit = max(1, min(limit, settings.letters_max_page_size))
        stmt = stmt.order_by(Letter.created_at.desc(), Letter.ref_no.desc())
        return list(db.scalars(apply_pagination(stmt, limit, offset)).all())

    @staticmethod
    def stats(db: Session, actor: RequestContext) -> dict:
        visible = visible_letters_clause(actor)

        def _count(*criteria) -> int:
            stmt = select(func.count()).select_from(Letter).where(visible, *criteria)
            return db.scalar(stmt) or 0

        return {
            "total": _count(),
            "incoming": _count(Letter.direction == LetterDirection.INCOMING),
            "outgoing": _count(Letter.direction == LetterDirection.OUTGOING),
            "archived": _count(Letter.status == LetterStatus.ARCHIVED),
        }

    @staticmethod
    def update(
        db: Session, letter_id, payload: LetterUpdate, actor: RequestContext
    ) -> Letter:
        letter = Letters._get_letter(db, letter_id)
        _require_editor(actor, letter)

        data = payload.model_dump(exclude_unset=True)
        recipient_ids = data.pop("recipient_user_ids", None)
        if recipient_ids is not None:
            recipient_ids = dedupe_ids(recipient_ids)

        if "ref_no" in data:
            data["ref_no"] = clean_str(data["ref_no"])
            if not data["ref_no"]:
                raise ValidationError("ref_no cannot be empty")
        for field in _REQUIRED_TEXT:
            if field in data:
                data[field] = clean_str(data[field])
                if not data[field]:
                    raise ValidationError(f"{field} cannot be empty")
        for field in _OPTIONAL_TEXT:
            if field in data:
                data[field] = clean_str(data[field])
        if "date_received" in data and data["date_received"] is None:
            raise ValidationError("date_received cannot be empty")
        if "direction" in data:
            data["direction"] = _parse_enum(
                LetterDirection, _VALID_DIRECTIONS, data["direction"], "direction"
            )
        if "status" in data:
            data["status"] = _parse_enum(
                LetterStatus, _VALID_STATUSES, data["status"], "status"
            )
        if "confidentiality" in data:
            data["confidentiality"] = _parse_enum(
                Confidentiality,
                _VALID_CONFIDENTIALITY,
                data["confidentiality"],
                "confidentiality",
            )
        if "tags" in data:
            data["tags"] = _clean_tags(data["tags"])

        previous = letter.confidentiality
        confidentiality = data.get("confidentiality", previous)
        _check_confidentiality(
            confidentiality,
            data.get("recipient_department", letter.recipient_department),
            recipient_ids,
            existing_recipients=recipient_count(db, letter.id),
        )
        if recipient_ids:
            ensure_profiles_exist(db, recipient_ids)

        if (
            "ref_no" in data
            and data["ref_no"] != letter.ref_no
            and _ref_no_taken(db, data["ref_no"])
        ):
            raise ConflictError(f"Reference number {data['ref_no']} already exists")

        for key, value in data.items():
            setattr(letter, key, value)
        letter.updated_at = datetime.now(timezone.utc)

        changed = list(data.keys())
        if confidentiality == Confidentiality.CONFIDENTIAL and recipient_ids is not None:
            clear_rows(db, letter.id)
            add_rows(db, letter.id, recipient_ids)
            changed.append("recipients")
        elif (
            previous == Confidentiality.CONFIDENTIAL
            and confidentiality != Confidentiality.CONFIDENTIAL
        ):
            clear_rows(db, letter.id)
            changed.append("recipients")

        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise ConflictError(f"Failed to update letter: {e.orig}")
        except SQLAlchemyError as e:
            db.rollback()
            raise UpstreamError(f"Failed to update letter: {e}")
        db.refresh(letter)
        logger.info("Updated letter %s", letter.id)
        AuditLog.record(
            db, actor.user_id, AuditAction.UPDATED, letter.id, {"fields": changed}
        )
        return letter

    # ------------------------------------------------------------------
    # Scan files
    # ------------------------------------------------------------------

    @staticmethod
    def upload_intake_file(
        db: Session,
        blobs: BlobStore,
        ref_no: str | None,
        file_name: str | None,
        content_type: str | None,
        content: bytes,
        actor: RequestContext,
    ) -> dict:
        """Store a scan ahead of record creation (intake flow)."""
        _require_editor(actor)
        ref_no = clean_str(ref_no)
        if not ref_no:
            raise ValidationError("ref_no is required")
        if _ref_no_taken(db, ref_no):
            raise ConflictError(f"Reference number {ref_no} already exists")
        mime = validate_scan(content_type, content)
        path = intake_path(actor.user_id, ref_no, mime)
        try:
            blobs.upload(path, content, mime)
        except BlobStoreError as e:
            raise UpstreamError(str(e))
        stored_name = path.rsplit("/", 1)[-1]
        logger.info("Stored intake scan for %s at %s", ref_no, path)
        return {
            "file_bucket": blobs.bucket,
            "file_path": path,
            "file_name": stored_name,
            "mime_type": mime,
        }

    @staticmethod
    def replace_scan(
        db: Session,
        blobs: BlobStore,
        letter_id,
        file_name: str | None,
        content_type: str | None,
        content: bytes,
        actor: RequestContext,
    ) -> Letter:
        letter = Letters._get_letter(db, letter_id)
        _require_editor(actor, letter)
        previous = letter.file_path
        mime = validate_scan(content_type, content)
        path = scan_path(letter.ref_no, mime)
        try:
            blobs.upload(path, content, mime)
        except BlobStoreError as e:
            raise UpstreamError(str(e))

        name = clean_str(file_name) or path.rsplit("/", 1)[-1]
        letter.file_bucket = blobs.bucket
        letter.file_path = path
        letter.file_name = name
        letter.mime_type = mime
        letter.updated_at = datetime.now(timezone.utc)
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise UpstreamError(f"Failed to update letter: {e}")
        db.refresh(letter)
        if previous and previous != path:
            discard_blob(blobs, previous)
        logger.info("Replaced scan of letter %s at %s", letter.id, path)
        AuditLog.record(
            db,
            actor.user_id,
            AuditAction.SCAN_REPLACED,
            letter.id,
            {"file": name, "mime": mime},
        )
        return letter

    @staticmethod
    def download(
        db: Session, blobs: BlobStore, letter_id, actor: RequestContext
    ) -> tuple[Letter, StoredBlob]:
        letter = Letters.get(db, letter_id, actor)
        if not letter.file_path:
            raise NotFoundError("Letter has no scan attached")
        path = letter.file_path
        try:
            blob = blobs.download(path)
        except BlobStoreError as e:
            raise UpstreamError(str(e))
        AuditLog.record(
            db, actor.user_id, AuditAction.DOWNLOADED, letter.id, {"path": path}
        )
        return letter, blob

    @staticmethod
    def signed_url(
        db: Session, blobs: BlobStore, letter_id, actor: RequestContext
    ) -> str:
        letter = Letters.get(db, letter_id, actor)
        if not letter.file_path:
            raise NotFoundError("Letter has no scan attached")
        try:
            return blobs.signed_url(letter.file_path, settings.signed_url_expiry)
        except BlobStoreError as e:
            raise UpstreamError(str(e))


def download_filename(letter: Letter) -> str:
    ext = (letter.file_path or "").rsplit(".", 1)[-1] or "bin"
    return f"{sanitize_ref_no(letter.ref_no)}.{ext}"


letters = Letters()
