from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class RegistryError(HTTPException):
    """Base for domain errors; each subclass pins a status code and a stable code."""

    status = 500
    code = "registry_error"

    def __init__(self, message: str, details=None, status_code: int | None = None):
        super().__init__(status_code=status_code or self.status, detail=message)
        self.details = details


class UnauthenticatedError(RegistryError):
    status = 401
    code = "unauthenticated"


class ProfileMissingError(RegistryError):
    status = 400
    code = "profile_missing"


class ForbiddenError(RegistryError):
    status = 403
    code = "forbidden"


class ValidationError(RegistryError):
    status = 400
    code = "validation_error"


class ConflictError(RegistryError):
    status = 409
    code = "conflict"


class NotFoundError(RegistryError):
    status = 404
    code = "not_found"


class UpstreamError(RegistryError):
    status = 500
    code = "upstream_error"


class PartialProvisioningError(UpstreamError):
    code = "partial_provisioning"


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = getattr(exc, "code", None) or f"http_{exc.status_code}"
        message = "Request failed"
        details = getattr(exc, "details", None)
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # exc.errors() ctx may contain raw Exception objects (not JSON-serialisable).
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items()}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
