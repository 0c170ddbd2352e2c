import uuid

from app.errors import ValidationError


def coerce_uuid(value, field: str = "id"):
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(f"Invalid {field}: {value}")


def escape_like(value: str) -> str:
    # Backslash is the escape character passed to ilike(..., escape="\\")
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def apply_pagination(query, limit, offset):
    return query.limit(limit).offset(offset)


def clean_str(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None
