from __future__ import annotations

import logging
import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from app.models.letter import Confidentiality, Letter, LetterRecipient
from app.models.profile import Profile
from app.services.access import RequestContext, can_edit, can_view
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)


def dedupe_ids(user_ids) -> list[uuid.UUID]:
    seen: list[uuid.UUID] = []
    for value in user_ids or []:
        uid = coerce_uuid(value, "user_id")
        if uid not in seen:
            seen.append(uid)
    return seen


def ensure_profiles_exist(db: Session, user_ids: list[uuid.UUID]) -> None:
    if not user_ids:
        return
    found = set(db.scalars(select(Profile.id).where(Profile.id.in_(user_ids))).all())
    missing = [str(uid) for uid in user_ids if uid not in found]
    if missing:
        raise ValidationError(
            f"Unknown recipient(s): {', '.join(missing)}", details={"missing": missing}
        )


def recipient_count(db: Session, letter_id: uuid.UUID) -> int:
    stmt = (
        select(func.count())
        .select_from(LetterRecipient)
        .where(LetterRecipient.letter_id == letter_id)
    )
    return db.scalar(stmt) or 0


def recipient_profiles(db: Session, letter_id: uuid.UUID) -> list[Profile]:
    stmt = (
        select(Profile)
        .join(LetterRecipient, LetterRecipient.user_id == Profile.id)
        .where(LetterRecipient.letter_id == letter_id)
        .order_by(Profile.full_name)
    )
    return list(db.scalars(stmt).all())


def add_rows(db: Session, letter_id: uuid.UUID, user_ids: list[uuid.UUID]) -> int:
    """Stage grant rows for pairs that do not exist yet; returns how many."""
    existing = set(
        db.scalars(
            select(LetterRecipient.user_id).where(
                LetterRecipient.letter_id == letter_id
            )
        ).all()
    )
    added = 0
    for uid in user_ids:
        if uid in existing:
            continue
        db.add(LetterRecipient(letter_id=letter_id, user_id=uid))
        added += 1
    db.flush()
    return added


def clear_rows(db: Session, letter_id: uuid.UUID) -> None:
    db.execute(delete(LetterRecipient).where(LetterRecipient.letter_id == letter_id))


class LetterRecipients:
    @staticmethod
    def _letter_for_edit(db: Session, letter_id, actor: RequestContext) -> Letter:
        letter = db.get(Letter, coerce_uuid(letter_id, "letter_id"))
        if not letter:
            raise NotFoundError("Letter not found")
        if not can_edit(actor, letter):
            raise ForbiddenError("Only ADMIN or SECRETARY can manage recipients")
        return letter

    @staticmethod
    def _commit(db: Session, what: str) -> None:
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise UpstreamError(f"Failed to {what}: {e}")

    @staticmethod
    def add(db: Session, letter_id, user_ids, actor: RequestContext) -> int:
        letter = LetterRecipients._letter_for_edit(db, letter_id, actor)
        if letter.confidentiality != Confidentiality.CONFIDENTIAL:
            raise ValidationError("Recipients can only be set on CONFIDENTIAL letters")
        ids = dedupe_ids(user_ids)
        if not ids:
            raise ValidationError("user_ids must not be empty")
        ensure_profiles_exist(db, ids)
        added = add_rows(db, letter.id, ids)
        LetterRecipients._commit(db, "add recipients")
        logger.info("Granted %d recipient(s) on letter %s", added, letter.id)
        return added

    @staticmethod
    def remove(db: Session, letter_id, user_id, actor: RequestContext) -> None:
        letter = LetterRecipients._letter_for_edit(db, letter_id, actor)
        uid = coerce_uuid(user_id, "user_id")
        row = db.scalar(
            select(LetterRecipient).where(
                LetterRecipient.letter_id == letter.id,
                LetterRecipient.user_id == uid,
            )
        )
        if not row:
            return
        if (
            letter.confidentiality == Confidentiality.CONFIDENTIAL
            and recipient_count(db, letter.id) <= 1
        ):
            raise ConflictError(
                "A confidential letter must keep at least one recipient"
            )
        db.delete(row)
        LetterRecipients._commit(db, "remove recipient")
        logger.info("Revoked recipient %s on letter %s", uid, letter.id)

    @staticmethod
    def clear(db: Session, letter_id, actor: RequestContext) -> None:
        letter = LetterRecipients._letter_for_edit(db, letter_id, actor)
        if (
            letter.confidentiality == Confidentiality.CONFIDENTIAL
            and recipient_count(db, letter.id) > 0
        ):
            raise ConflictError(
                "A confidential letter must keep at least one recipient; "
                "change its confidentiality or replace the recipient list instead"
            )
        clear_rows(db, letter.id)
        LetterRecipients._commit(db, "clear recipients")
        logger.info("Cleared recipients on letter %s", letter.id)

    @staticmethod
    def list(db: Session, letter_id, actor: RequestContext) -> list[Profile]:
        letter = db.get(Letter, coerce_uuid(letter_id, "letter_id"))
        if not letter or not can_view(db, actor, letter):
            raise NotFoundError("Letter not found")
        return recipient_profiles(db, letter.id)


letter_recipients = LetterRecipients()
