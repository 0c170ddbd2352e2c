from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.schemas.common import OkResponse
from app.schemas.letter import (
    RecipientRemove,
    RecipientsAdd,
    RecipientsClear,
    RecipientsResponse,
)
from app.services import letter_recipient as recipient_service
from app.services.access import RequestContext

router = APIRouter(prefix="/letters/recipients", tags=["letter-recipients"])


@router.post("/add", response_model=OkResponse)
def add_recipients(
    payload: RecipientsAdd,
    db: Session = Depends(get_db),
    actor: RequestContext = Depends(require_user_auth),
):
    recipient_service.letter_recipients.add(
        db, payload.letter_id, payload.user_ids, actor
    )
    return {"ok": True}


@router.post("/remove", response_model=OkResponse)
def remove_recipient(
    payload: RecipientRemove,
    db: Session = Depends(get_db),
    actor: RequestContext = Depends(require_user_auth),
):
    recipient_service.letter_recipients.remove(
        db, payload.letter_id, payload.user_id, actor
    )
    return {"ok": True}


@router.post("/clear", response_model=OkResponse)
def clear_recipients(
    payload: RecipientsClear,
    db: Session = Depends(get_db),
    actor: RequestContext = Depends(require_user_auth),
):
    recipient_service.letter_recipients.clear(db, payload.letter_id, actor)
    return {"ok": True}


@router.get("/list", response_model=RecipientsResponse)
def list_recipients(
    letter_id: str,
    db: Session = Depends(get_db),
    actor: RequestContext = Depends(require_user_auth),
):
    profiles = recipient_service.letter_recipients.list(db, letter_id, actor)
    return {"recipients": profiles}
