from __future__ import annotations

import abc
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings
from app.errors import ValidationError

logger = logging.getLogger(__name__)

PDF_SIGNATURE = b"%PDF-"
JPEG_SIGNATURE = b"\xff\xd8\xff"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

_EXTENSIONS = {
    "application/pdf": "pdf",
    "image/jpeg": "jpg",
    "image/png": "png",
}
_UNSAFE_REF_CHARS = re.compile(r"[^A-Za-z0-9\-_]")
_YEAR = re.compile(r"^\d{4}$")


class BlobStoreError(Exception):
    pass


@dataclass(frozen=True)
class StoredBlob:
    data: bytes
    content_type: str


class BlobStore(abc.ABC):
    bucket: str

    @abc.abstractmethod
    def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Write ``data`` at ``path``, replacing whatever was there."""

    @abc.abstractmethod
    def download(self, path: str) -> StoredBlob: ...

    @abc.abstractmethod
    def signed_url(self, path: str, expires_in: int) -> str: ...

    @abc.abstractmethod
    def delete(self, path: str) -> None: ...


class S3BlobStore(BlobStore):
    def __init__(self, bucket: str | None = None):
        self.bucket = bucket or settings.letters_bucket

    @staticmethod
    def is_configured() -> bool:
        return bool(
            settings.s3_endpoint_url
            and settings.s3_access_key
            and settings.s3_secret_key
        )

    @staticmethod
    def _get_client():  # type: ignore[return]
        if not S3BlobStore.is_configured():
            raise BlobStoreError(
                "S3 storage is not configured. "
                "Set S3_ENDPOINT_URL, S3_ACCESS_KEY, and S3_SECRET_KEY."
            )
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        client = self._get_client()
        try:
            client.put_object(
                Bucket=self.bucket, Key=path, Body=data, ContentType=content_type
            )
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(f"Upload failed: {e}")
        logger.info("Stored %d bytes at %s/%s", len(data), self.bucket, path)

    def download(self, path: str) -> StoredBlob:
        client = self._get_client()
        try:
            obj = client.get_object(Bucket=self.bucket, Key=path)
            body = obj["Body"].read()
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(f"Download failed: {e}")
        return StoredBlob(
            data=body,
            content_type=obj.get("ContentType") or "application/octet-stream",
        )

    def signed_url(self, path: str, expires_in: int) -> str:
        client = self._get_client()
        try:
            url: str = client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": path},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(f"Could not sign URL: {e}")
        return url

    def delete(self, path: str) -> None:
        client = self._get_client()
        try:
            client.delete_object(Bucket=self.bucket, Key=path)
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(f"Delete failed: {e}")


# ---------------------------------------------------------------------------
# Scan files
# ---------------------------------------------------------------------------


def get_allowed_types() -> set[str]:
    return {t.strip() for t in settings.allowed_scan_types.split(",") if t.strip()}


def sanitize_ref_no(ref_no: str) -> str:
    return _UNSAFE_REF_CHARS.sub("-", ref_no)


def ref_year(ref_no: str) -> int:
    """Year segment of ``PREFIX/DIR/YEAR/NNNN``; the current year if absent."""
    parts = ref_no.split("/")
    if len(parts) >= 2 and _YEAR.match(parts[-2]):
        return int(parts[-2])
    return datetime.now(timezone.utc).year


def scan_path(ref_no: str, mime_type: str) -> str:
    ext = _EXTENSIONS.get(mime_type, "bin")
    return f"letters/{ref_year(ref_no)}/{sanitize_ref_no(ref_no)}.{ext}"


def intake_prefix(user_id) -> str:
    return f"intake/{user_id}/"


def intake_path(user_id, ref_no: str, mime_type: str) -> str:
    """Staging key for a scan uploaded before its letter exists.

    Kept apart from ``letters/`` so an intake can never replace a registered
    letter's scan.
    """
    ext = _EXTENSIONS.get(mime_type, "bin")
    return f"{intake_prefix(user_id)}{sanitize_ref_no(ref_no)}.{ext}"


def discard_blob(blobs: BlobStore, path: str) -> None:
    try:
        blobs.delete(path)
    except BlobStoreError:
        logger.warning("Could not remove stale object %s/%s", blobs.bucket, path)


def validate_scan(content_type: str | None, content: bytes) -> str:
    """Check declared type, size and file signature; return the MIME type."""
    allowed = get_allowed_types()
    if content_type not in allowed:
        raise ValidationError("Only PDF/JPG/PNG allowed")
    if not content:
        raise ValidationError("File is empty")

    max_bytes = settings.max_upload_mb * 1024 * 1024
    if len(content) > max_bytes:
        raise ValidationError(f"File too large (max {settings.max_upload_mb}MB)")

    detected = _detect_content_type_from_magic(content[:16])
    if detected != content_type:
        raise ValidationError("File content does not match declared content type.")
    return content_type


def _detect_content_type_from_magic(file_header: bytes) -> str | None:
    if file_header.startswith(PDF_SIGNATURE):
        return "application/pdf"
    if file_header.startswith(JPEG_SIGNATURE):
        return "image/jpeg"
    if file_header.startswith(PNG_SIGNATURE):
        return "image/png"
    return None


blob_store = S3BlobStore()
