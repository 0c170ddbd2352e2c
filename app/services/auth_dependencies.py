"""Request authentication: token -> identity user -> profile -> RequestContext."""

from __future__ import annotations

import logging

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.db import get_db
from app.errors import ForbiddenError, ProfileMissingError, UnauthenticatedError
from app.models.profile import Profile, ProfileRole
from app.services.access import RequestContext
from app.services.identity import IdentityError, IdentityService, identity
from app.services.letter_storage import BlobStore, blob_store

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

ACCESS_TOKEN_COOKIE = "access_token"


def get_identity() -> IdentityService:
    return identity


def get_blob_store() -> BlobStore:
    return blob_store


def extract_token(
    request: Request, credentials: HTTPAuthorizationCredentials | None
) -> str | None:
    if credentials and credentials.scheme.lower() == "bearer" and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_TOKEN_COOKIE) or None


def resolve_context(
    db: Session, identity_service: IdentityService, token: str | None
) -> RequestContext:
    """Resolve the caller. The role is read from the profile on every call."""
    if not token:
        raise UnauthenticatedError("Not authenticated")
    try:
        user = identity_service.get_user(token)
    except IdentityError as e:
        logger.warning("Token verification failed: %s", e.message)
        raise UnauthenticatedError("Not authenticated")
    if user is None:
        raise UnauthenticatedError("Invalid or expired session")
    profile = db.get(Profile, user.id)
    if profile is None:
        raise ProfileMissingError("No profile found for this account")
    return RequestContext(
        user_id=profile.id,
        role=profile.role,
        department=profile.department,
        full_name=profile.full_name,
        email=user.email or profile.email,
        access_token=token,
    )


def require_user_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    identity_service: IdentityService = Depends(get_identity),
) -> RequestContext:
    return resolve_context(db, identity_service, extract_token(request, credentials))


def require_role(*roles: str | ProfileRole):
    allowed = {r if isinstance(r, ProfileRole) else ProfileRole(r.upper()) for r in roles}

    def _require_role(
        actor: RequestContext = Depends(require_user_auth),
    ) -> RequestContext:
        if actor.role not in allowed:
            raise ForbiddenError("Insufficient role")
        return actor

    return _require_role
