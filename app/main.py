from fastapi import Depends, FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.admin import router as admin_router
from app.api.auth import router as auth_router
from app.api.deps import require_role
from app.api.letter_recipients import router as letter_recipients_router
from app.api.letters import router as letters_router
from app.api.users import router as users_router
from app.config import settings
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware

app = FastAPI(title=f"{settings.brand_name} Letters Registry API")

configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(auth_router)
# Fixed /letters/recipients/* paths must be registered before /letters/{letter_id}.
_include_api_router(letter_recipients_router)
_include_api_router(letters_router)
_include_api_router(users_router)
_include_api_router(admin_router, dependencies=[Depends(require_role("ADMIN"))])


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
