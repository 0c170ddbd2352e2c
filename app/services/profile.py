from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import ForbiddenError, NotFoundError, ValidationError
from app.models.profile import Profile
from app.services.access import RequestContext, can_manage_users, can_search_users
from app.services.common import apply_pagination, clean_str, coerce_uuid, escape_like
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Profiles(ListResponseMixin):
    @staticmethod
    def get(db: Session, user_id) -> Profile:
        profile = db.get(Profile, coerce_uuid(user_id, "user_id"))
        if not profile:
            raise NotFoundError("User not found")
        return profile

    @staticmethod
    def search(db: Session, q: str | None, actor: RequestContext) -> list[Profile]:
        """Typeahead over name and department for picking letter recipients."""
        if not can_search_users(actor):
            raise ForbiddenError("Forbidden")
        text = clean_str(q) or ""
        if len(text) < settings.user_search_min_query:
            raise ValidationError(
                f"Query must be at least {settings.user_search_min_query} characters"
            )
        pattern = f"%{escape_like(text)}%"
        stmt = (
            select(Profile)
            .where(
                or_(
                    Profile.full_name.ilike(pattern, escape="\\"),
                    Profile.department.ilike(pattern, escape="\\"),
                )
            )
            .order_by(Profile.full_name)
            .limit(settings.user_search_limit)
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def list(
        db: Session, actor: RequestContext, limit: int = 100, offset: int = 0
    ) -> list[Profile]:
        if not can_manage_users(actor):
            raise ForbiddenError("Admin only")
        stmt = select(Profile).order_by(Profile.created_at.desc())
        return list(db.scalars(apply_pagination(stmt, limit, offset)).all())


profiles = Profiles()
