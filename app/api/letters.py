from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.deps import get_blob_store, get_db, require_user_auth
from app.schemas.common import ListResponse
from app.schemas.letter import (
    LetterCreate,
    LetterCreated,
    LetterDetail,
    LetterRead,
    LetterStats,
    LetterUpdate,
    NextRefRequest,
    NextRefResponse,
    SignedURLRequest,
    SignedURLResponse,
    StoredFile,
)
from app.config import settings
from app.services import letter as letter_service
from app.services.access import RequestContext
from app.services.letter_storage import BlobStore
from app.services.ref_numbers import allocate_next_ref_no

router = APIRouter(prefix="/letters", tags=["letters"])


@router.post("", response_model=LetterCreated, status_code=status.HTTP_201_CREATED)
def create_letter(
    payload: LetterCreate,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    actor: RequestContext = Depends(require_user_auth),
):
    letter = letter_service.letters.create(db, payload, actor, blobs)
    return {"ok": True, "id": letter.id, "ref_no": letter.ref_no}


@router.get("", response_model=ListResponse[LetterRead])
def list_letters(
    direction: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    confidentiality: str | None = None,
    q: str | None = None,
    limit: int = Query(default=50, ge=1, le=settings.letters_max_page_size),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: RequestContext = Depends(require_user_auth),
):
    return letter_service.letters.list_response(
        db,
        actor,
        direction,
        status_filter,
        confidentiality,
        q,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=LetterStats)
def letter_stats(
    db: Session = Depends(get_db),
    actor: RequestContext = Depends(require_user_auth),
):
    return letter_service.letters.stats(db, actor)


@router.post("/next-ref", response_model=NextRefResponse)
def next_ref(
    payload: NextRefRequest,
    db: Session = Depends(get_db),
    actor: RequestContext = Depends(require_user_auth),
):
    return {"ref_no": allocate_next_ref_no(db, payload.direction, payload.year)}


@router.post("/upload", response_model=StoredFile)
def upload_scan(
    file: UploadFile = File(...),
    ref_no: str = Form(...),
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    actor: RequestContext = Depends(require_user_auth),
):
    content = file.file.read()
    return letter_service.letters.upload_intake_file(
        db, blobs, ref_no, file.filename, file.content_type, content, actor
    )


@router.post("/signed-url", response_model=SignedURLResponse)
def signed_url(
    payload: SignedURLRequest,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    actor: RequestContext = Depends(require_user_auth),
):
    url = letter_service.letters.signed_url(db, blobs, payload.letter_id, actor)
    return {"url": url, "expires_in": settings.signed_url_expiry}


@router.get("/{letter_id}", response_model=LetterDetail)
def get_letter(
    letter_id: str,
    db: Session = Depends(get_db),
    actor: RequestContext = Depends(require_user_auth),
):
    return letter_service.letters.view(db, letter_id, actor)


@router.post("/{letter_id}", response_model=LetterRead)
def update_letter(
    letter_id: str,
    payload: LetterUpdate,
    db: Session = Depends(get_db),
    actor: RequestContext = Depends(require_user_auth),
):
    return letter_service.letters.update(db, letter_id, payload, actor)


@router.post("/{letter_id}/replace-scan", response_model=LetterRead)
def replace_scan(
    letter_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    actor: RequestContext = Depends(require_user_auth),
):
    content = file.file.read()
    return letter_service.letters.replace_scan(
        db, blobs, letter_id, file.filename, file.content_type, content, actor
    )


@router.get("/{letter_id}/download")
def download_scan(
    letter_id: str,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    actor: RequestContext = Depends(require_user_auth),
):
    letter, blob = letter_service.letters.download(db, blobs, letter_id, actor)
    filename = letter_service.download_filename(letter)
    return Response(
        content=blob.data,
        media_type=blob.content_type or letter.mime_type or "application/octet-stream",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-store",
        },
    )
