"""Who may see or change a letter.

The same rules exist twice: as Python predicates for single records and as a
SQL clause for listings, so that rows an actor may not see never leave the
database.
"""

import uuid
from dataclasses import dataclass

from sqlalchemy import and_, exists, false, or_, select, true
from sqlalchemy.orm import Session

from app.models.letter import Confidentiality, Letter, LetterRecipient
from app.models.profile import ProfileRole

_REGISTRY_ROLES = {ProfileRole.ADMIN, ProfileRole.SECRETARY}


@dataclass(frozen=True)
class RequestContext:
    """The resolved caller, passed explicitly into every service call."""

    user_id: uuid.UUID
    role: ProfileRole
    department: str | None = None
    full_name: str | None = None
    email: str | None = None
    access_token: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ProfileRole.ADMIN


def has_registry_role(actor: RequestContext) -> bool:
    return actor.role in _REGISTRY_ROLES


def is_recipient(db: Session, letter_id, user_id) -> bool:
    stmt = select(
        exists().where(
            LetterRecipient.letter_id == letter_id,
            LetterRecipient.user_id == user_id,
        )
    )
    return bool(db.scalar(stmt))


def can_view(db: Session, actor: RequestContext, letter: Letter) -> bool:
    if letter.confidentiality == Confidentiality.PUBLIC:
        return True
    if has_registry_role(actor):
        return True
    if letter.confidentiality == Confidentiality.INTERNAL:
        return (
            actor.department is not None
            and letter.recipient_department is not None
            and actor.department == letter.recipient_department
        )
    if letter.confidentiality == Confidentiality.CONFIDENTIAL:
        return is_recipient(db, letter.id, actor.user_id)
    return False


def can_edit(actor: RequestContext, letter: Letter | None = None) -> bool:
    # STAFF never edit, whatever they can see.
    return has_registry_role(actor)


def can_manage_users(actor: RequestContext) -> bool:
    return actor.role == ProfileRole.ADMIN


def can_search_users(actor: RequestContext) -> bool:
    return has_registry_role(actor)


def visible_letters_clause(actor: RequestContext):
    if has_registry_role(actor):
        return true()
    internal = false()
    if actor.department is not None:
        internal = and_(
            Letter.confidentiality == Confidentiality.INTERNAL,
            Letter.recipient_department == actor.department,
        )
    granted = and_(
        Letter.confidentiality == Confidentiality.CONFIDENTIAL,
        exists().where(
            LetterRecipient.letter_id == Letter.id,
            LetterRecipient.user_id == actor.user_id,
        ),
    )
    return or_(Letter.confidentiality == Confidentiality.PUBLIC, internal, granted)
