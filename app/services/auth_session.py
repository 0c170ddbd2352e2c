from __future__ import annotations

import logging

from app.config import settings
from app.errors import UnauthenticatedError, UpstreamError, ValidationError
from app.services.access import RequestContext
from app.services.common import clean_str
from app.services.identity import IdentityError, IdentityService, IdentitySession

logger = logging.getLogger(__name__)


class Sessions:
    @staticmethod
    def login(
        identity: IdentityService, email: str | None, password: str | None
    ) -> IdentitySession:
        email = (clean_str(email) or "").lower()
        if not email or not password:
            raise ValidationError("Email and password are required")
        try:
            session = identity.sign_in(email, password)
        except IdentityError as e:
            if e.status_code is not None and 400 <= e.status_code < 500:
                raise UnauthenticatedError("Invalid email or password")
            raise UpstreamError(f"Sign-in failed: {e.message}")
        logger.info("Signed in %s", email)
        return session

    @staticmethod
    def logout(identity: IdentityService, access_token: str | None) -> None:
        if not access_token:
            return
        try:
            identity.sign_out(access_token)
        except IdentityError as e:
            # The cookie is dropped regardless; a stale upstream session expires.
            logger.warning("Sign-out failed: %s", e.message)

    @staticmethod
    def change_password(
        identity: IdentityService,
        actor: RequestContext,
        current_password: str | None,
        new_password: str | None,
    ) -> None:
        if not current_password:
            raise ValidationError("Current password is required")
        if not new_password or len(new_password) < settings.password_min_length:
            raise ValidationError(
                f"Password must be at least {settings.password_min_length} characters"
            )
        if new_password == current_password:
            raise ValidationError("New password must differ from the current one")
        if not actor.email:
            raise ValidationError("Account has no email address")
        try:
            identity.sign_in(actor.email, current_password)
        except IdentityError as e:
            if e.status_code is not None and 400 <= e.status_code < 500:
                raise ValidationError("Current password is incorrect")
            raise UpstreamError(f"Password check failed: {e.message}")
        try:
            identity.update_password(actor.access_token or "", new_password)
        except IdentityError as e:
            if e.status_code is not None and 400 <= e.status_code < 500:
                raise ValidationError(e.message)
            raise UpstreamError(f"Password change failed: {e.message}")
        logger.info("Password changed for %s", actor.user_id)


sessions = Sessions()
