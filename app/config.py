import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/letters_registry"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # S3 / MinIO settings
    s3_endpoint_url: str = os.getenv("S3_ENDPOINT_URL", "")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "")
    s3_region: str = os.getenv("S3_REGION", "us-east-1")
    letters_bucket: str = os.getenv("LETTERS_BUCKET", "letters")
    signed_url_expiry: int = int(os.getenv("SIGNED_URL_EXPIRY_SECONDS", "600"))
    max_upload_mb: int = int(os.getenv("MAX_UPLOAD_MB", "10"))
    allowed_scan_types: str = os.getenv(
        "ALLOWED_SCAN_TYPES", "application/pdf,image/jpeg,image/png"
    )

    # Identity provider (GoTrue-compatible auth API)
    identity_url: str = os.getenv("IDENTITY_URL", "")
    identity_anon_key: str = os.getenv("IDENTITY_ANON_KEY", "")
    identity_service_key: str = os.getenv("IDENTITY_SERVICE_KEY", "")
    identity_timeout: float = float(os.getenv("IDENTITY_TIMEOUT_SECONDS", "10"))

    # Registry rules
    ref_no_prefix: str = os.getenv("REF_NO_PREFIX", "UHAS/PROC")
    ref_no_max_attempts: int = int(os.getenv("REF_NO_MAX_ATTEMPTS", "3"))
    password_min_length: int = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))
    letters_max_page_size: int = int(os.getenv("LETTERS_MAX_PAGE_SIZE", "200"))
    audit_max_page_size: int = int(os.getenv("AUDIT_MAX_PAGE_SIZE", "300"))
    user_search_limit: int = int(os.getenv("USER_SEARCH_LIMIT", "20"))
    user_search_min_query: int = int(os.getenv("USER_SEARCH_MIN_QUERY", "2"))

    # Branding
    brand_name: str = os.getenv("BRAND_NAME", "UHAS Procurement Directorate")


settings = Settings()
