from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials

from app.api.deps import get_identity, require_user_auth
from app.schemas.auth import (
    LoginRequest,
    MeResponse,
    PasswordChangeRequest,
    TokenResponse,
)
from app.schemas.common import OkResponse
from app.services.access import RequestContext
from app.services.auth_dependencies import (
    ACCESS_TOKEN_COOKIE,
    bearer_scheme,
    extract_token,
)
from app.services.auth_session import sessions
from app.services.identity import IdentityService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    response: Response,
    identity: IdentityService = Depends(get_identity),
):
    session = sessions.login(identity, payload.email, payload.password)
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        session.access_token,
        max_age=session.expires_in,
        httponly=True,
        samesite="lax",
    )
    return {
        "access_token": session.access_token,
        "refresh_token": session.refresh_token,
        "expires_in": session.expires_in,
    }


@router.post("/logout", response_model=OkResponse)
def logout(
    request: Request,
    response: Response,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    identity: IdentityService = Depends(get_identity),
):
    sessions.logout(identity, extract_token(request, credentials))
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    return {"ok": True}


@router.get("/me", response_model=MeResponse)
def me(actor: RequestContext = Depends(require_user_auth)):
    return {
        "user_id": actor.user_id,
        "email": actor.email,
        "full_name": actor.full_name,
        "role": actor.role,
        "department": actor.department,
    }


@router.post("/password", response_model=OkResponse)
def change_password(
    payload: PasswordChangeRequest,
    identity: IdentityService = Depends(get_identity),
    actor: RequestContext = Depends(require_user_auth),
):
    sessions.change_password(
        identity, actor, payload.current_password, payload.new_password
    )
    return {"ok": True}
