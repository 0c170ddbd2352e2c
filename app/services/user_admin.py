"""ADMIN-only provisioning of identity accounts and their profiles.

Each operation spans two systems with no shared transaction. When the second
step fails after the first succeeded, the error names the leftover record so
an administrator can reconcile it by hand.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PartialProvisioningError,
    UpstreamError,
    ValidationError,
)
from app.models.audit import AuditAction
from app.models.profile import Profile, ProfileRole
from app.services.access import RequestContext, can_manage_users
from app.services.audit import AuditLog
from app.services.common import clean_str, coerce_uuid
from app.services.identity import IdentityError, IdentityService

logger = logging.getLogger(__name__)

_VALID_ROLES = {e.value for e in ProfileRole}


def _require_admin(actor: RequestContext) -> None:
    if not can_manage_users(actor):
        raise ForbiddenError("Admin only")


def _parse_role(role) -> ProfileRole:
    if isinstance(role, ProfileRole):
        return role
    normalized = (clean_str(role) or "").upper()
    if normalized not in _VALID_ROLES:
        raise ValidationError(f"Invalid role. Allowed: {sorted(_VALID_ROLES)}")
    return ProfileRole(normalized)


def _clean_email(email) -> str:
    value = (clean_str(email) or "").lower()
    if not value:
        raise ValidationError("Email is required")
    if "@" not in value:
        raise ValidationError("Invalid email address")
    return value


def _identity_failure(e: IdentityError, what: str):
    # 4xx from the provider means the request itself was bad (taken email etc.)
    if e.status_code is not None and 400 <= e.status_code < 500:
        return ValidationError(e.message)
    return UpstreamError(f"Failed to {what}: {e.message}")


class UserAdmin:
    @staticmethod
    def create_user(
        db: Session,
        identity: IdentityService,
        email: str | None,
        password: str | None,
        role,
        department: str | None,
        full_name: str | None,
        actor: RequestContext,
    ) -> Profile:
        _require_admin(actor)
        email = _clean_email(email)
        if not password or len(password) < settings.password_min_length:
            raise ValidationError(
                f"Password must be at least {settings.password_min_length} characters"
            )
        parsed_role = _parse_role(role or ProfileRole.STAFF.value)
        department = clean_str(department)
        full_name = clean_str(full_name)

        try:
            account = identity.create_user(
                email, password, metadata={"full_name": full_name}
            )
        except IdentityError as e:
            raise _identity_failure(e, "create identity account")

        profile = Profile(
            id=account.id,
            full_name=full_name,
            role=parsed_role,
            department=department,
            email=email,
        )
        db.add(profile)
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                "Identity account %s created but profile insert failed: %s",
                account.id,
                e,
            )
            raise PartialProvisioningError(
                f"Identity account {account.id} was created but its profile could "
                "not be saved; delete the account or create the profile manually",
                details={"user_id": str(account.id)},
            )
        db.refresh(profile)
        logger.info("Provisioned user %s as %s", profile.id, parsed_role.value)
        AuditLog.record(
            db,
            actor.user_id,
            AuditAction.USER_CREATED,
            meta={
                "created_user": profile.id,
                "email": email,
                "role": parsed_role.value,
                "department": department,
            },
        )
        return profile

    @staticmethod
    def delete_user(
        db: Session, identity: IdentityService, user_id, actor: RequestContext
    ) -> None:
        target_id = coerce_uuid(user_id, "user_id")
        if target_id == actor.user_id:
            raise ConflictError("You cannot delete your own account")
        _require_admin(actor)
        profile = db.get(Profile, target_id)
        if not profile:
            raise NotFoundError("User not found")

        email = profile.email
        if not email:
            try:
                account = identity.get_user_by_id(target_id)
                email = account.email if account else None
            except IdentityError as e:
                logger.warning("Could not look up email of %s: %s", target_id, e)

        try:
            db.delete(profile)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise ConflictError(f"Failed to delete profile: {e}")

        try:
            identity.delete_user(target_id)
        except IdentityError as e:
            logger.error(
                "Profile %s deleted but identity account removal failed: %s",
                target_id,
                e.message,
            )
            raise PartialProvisioningError(
                f"Profile {target_id} was deleted but the identity account could "
                f"not be removed: {e.message}",
                details={"user_id": str(target_id)},
            )
        logger.info("Deleted user %s", target_id)
        AuditLog.record(
            db,
            actor.user_id,
            AuditAction.USER_DELETED,
            meta={"deleted_user": target_id, "email": email},
        )

    @staticmethod
    def set_role(
        db: Session,
        user_id,
        role,
        department: str | None,
        full_name: str | None,
        actor: RequestContext,
    ) -> Profile:
        _require_admin(actor)
        target_id = coerce_uuid(user_id, "user_id")
        parsed_role = _parse_role(role)
        profile = db.get(Profile, target_id)
        if not profile:
            raise NotFoundError("User not found")

        profile.role = parsed_role
        profile.department = clean_str(department)
        if full_name is not None:
            profile.full_name = clean_str(full_name)
        profile.updated_at = datetime.now(timezone.utc)
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise UpstreamError(f"Failed to update role: {e}")
        db.refresh(profile)
        logger.info("Set role of %s to %s", target_id, parsed_role.value)
        AuditLog.record(
            db,
            actor.user_id,
            AuditAction.ROLE_UPDATED,
            meta={
                "target_user": target_id,
                "role": parsed_role.value,
                "department": profile.department,
            },
        )
        return profile

    @staticmethod
    def update_email(
        db: Session,
        identity: IdentityService,
        user_id,
        email: str | None,
        actor: RequestContext,
    ) -> Profile:
        _require_admin(actor)
        target_id = coerce_uuid(user_id, "user_id")
        email = _clean_email(email)
        profile = db.get(Profile, target_id)
        if not profile:
            raise NotFoundError("User not found")

        try:
            identity.update_email(target_id, email)
        except IdentityError as e:
            raise _identity_failure(e, "update email")

        profile.email = email
        profile.updated_at = datetime.now(timezone.utc)
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise UpstreamError(f"Email changed but profile mirror failed: {e}")
        db.refresh(profile)
        logger.info("Updated email of %s", target_id)
        AuditLog.record(
            db,
            actor.user_id,
            AuditAction.USER_EMAIL_UPDATED,
            meta={"target_user": target_id, "email": email},
        )
        return profile


user_admin = UserAdmin()
