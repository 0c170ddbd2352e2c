from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_identity, require_user_auth
from app.config import settings
from app.schemas.audit import AuditLogRead
from app.schemas.common import ListResponse, OkResponse
from app.schemas.profile import (
    ProfileRead,
    SetRoleRequest,
    UpdateEmailRequest,
    UserCreated,
    UserCreateRequest,
    UserDeleteRequest,
)
from app.errors import ForbiddenError
from app.services import profile as profile_service
from app.services import user_admin as user_admin_service
from app.services.access import RequestContext, can_manage_users
from app.services.audit import audit_log
from app.services.identity import IdentityService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/create-user", response_model=UserCreated, status_code=status.HTTP_201_CREATED
)
def create_user(
    payload: UserCreateRequest,
    db: Session = Depends(get_db),
    identity: IdentityService = Depends(get_identity),
    actor: RequestContext = Depends(require_user_auth),
):
    profile = user_admin_service.user_admin.create_user(
        db,
        identity,
        payload.email,
        payload.password,
        payload.role,
        payload.department,
        payload.full_name,
        actor,
    )
    return {"ok": True, "user_id": profile.id}


@router.post("/delete-user", response_model=OkResponse)
def delete_user(
    payload: UserDeleteRequest,
    db: Session = Depends(get_db),
    identity: IdentityService = Depends(get_identity),
    actor: RequestContext = Depends(require_user_auth),
):
    user_admin_service.user_admin.delete_user(db, identity, payload.user_id, actor)
    return {"ok": True}


@router.post("/set-role", response_model=ProfileRead)
def set_role(
    payload: SetRoleRequest,
    db: Session = Depends(get_db),
    actor: RequestContext = Depends(require_user_auth),
):
    return user_admin_service.user_admin.set_role(
        db,
        payload.user_id,
        payload.role,
        payload.department,
        payload.full_name,
        actor,
    )


@router.post("/update-email", response_model=ProfileRead)
def update_email(
    payload: UpdateEmailRequest,
    db: Session = Depends(get_db),
    identity: IdentityService = Depends(get_identity),
    actor: RequestContext = Depends(require_user_auth),
):
    return user_admin_service.user_admin.update_email(
        db, identity, payload.user_id, payload.email, actor
    )


@router.get("/users", response_model=ListResponse[ProfileRead])
def list_users(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: RequestContext = Depends(require_user_auth),
):
    return profile_service.profiles.list_response(
        db, actor, limit=limit, offset=offset
    )


@router.get("/audits", response_model=ListResponse[AuditLogRead])
def list_audits(
    action: str | None = None,
    letter_id: str | None = None,
    limit: int = Query(default=settings.audit_max_page_size, ge=1),
    db: Session = Depends(get_db),
    actor: RequestContext = Depends(require_user_auth),
):
    if not can_manage_users(actor):
        raise ForbiddenError("Admin only")
    limit = min(limit, settings.audit_max_page_size)
    items = audit_log.list(db, action=action, letter_id=letter_id, limit=limit)
    return {"items": items, "count": len(items), "limit": limit, "offset": 0}
