from app.db import get_db
from app.services.auth_dependencies import (
    get_blob_store,
    get_identity,
    require_role,
    require_user_auth,
)

__all__ = [
    "get_blob_store",
    "get_db",
    "get_identity",
    "require_role",
    "require_user_auth",
]
