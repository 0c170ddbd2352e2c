from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import ValidationError
from app.models.letter import Letter, LetterDirection
from app.services.common import escape_like

logger = logging.getLogger(__name__)

_DIRECTION_CODES = {
    LetterDirection.INCOMING: "IN",
    LetterDirection.OUTGOING: "OUT",
}


def _coerce_direction(direction) -> LetterDirection:
    if isinstance(direction, LetterDirection):
        return direction
    try:
        return LetterDirection(str(direction).upper())
    except ValueError:
        raise ValidationError(
            f"Invalid direction. Allowed: {sorted(e.value for e in LetterDirection)}"
        )


def ref_prefix(direction, year: int | None = None) -> str:
    code = _DIRECTION_CODES[_coerce_direction(direction)]
    y = year or datetime.now(timezone.utc).year
    return f"{settings.ref_no_prefix}/{code}/{y}/"


def _suffix_number(ref_no: str, prefix: str) -> int | None:
    if not ref_no.startswith(prefix):
        return None
    tail = ref_no[len(prefix) :]
    if not tail.isdecimal():
        return None
    return int(tail)


def _usable_year(year) -> int | None:
    """The given year if plausible, else None so the current year applies."""
    try:
        value = int(year)
    except (TypeError, ValueError):
        return None
    return value if 1900 <= value <= 9999 else None


def allocate_next_ref_no(db: Session, direction, year: int | None = None) -> str:
    """Next reference number for a (direction, year) scope.

    Uses the largest numeric suffix in scope, not the most recently created
    row, so back-filled letters cannot cause a reused number. Suffixes that do
    not parse as integers are ignored. A missing or implausible year means the
    current year. The value is only a proposal: the UNIQUE constraint on
    ``ref_no`` is what settles concurrent allocations.
    """
    prefix = ref_prefix(direction, _usable_year(year))
    stmt = select(Letter.ref_no).where(
        Letter.ref_no.like(f"{escape_like(prefix)}%", escape="\\")
    )
    highest = 0
    for ref_no in db.scalars(stmt):
        number = _suffix_number(ref_no, prefix)
        if number is not None and number > highest:
            highest = number
    return f"{prefix}{highest + 1:04d}"
