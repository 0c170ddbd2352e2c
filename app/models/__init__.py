from app.models.audit import AuditAction, AuditLogEntry  # noqa: F401
from app.models.letter import (  # noqa: F401
    Confidentiality,
    Letter,
    LetterDirection,
    LetterRecipient,
    LetterStatus,
)
from app.models.profile import Profile, ProfileRole  # noqa: F401
