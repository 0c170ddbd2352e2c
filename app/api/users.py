from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.schemas.profile import UserSearchResponse
from app.services import profile as profile_service
from app.services.access import RequestContext

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/search", response_model=UserSearchResponse)
def search_users(
    q: str = "",
    db: Session = Depends(get_db),
    actor: RequestContext = Depends(require_user_auth),
):
    return {"users": profile_service.profiles.search(db, q, actor)}
