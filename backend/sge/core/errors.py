"""
errors.py — Error Taxonomy & JSON Error Responses

Every error leaving the API is a JSON object with at least an `error` field:

    {"error": "<human readable>", "kind": "<machine readable>", "details": ...}

Service code raises the AppError subclasses below; the handlers registered by
`register_exception_handlers()` turn them (and FastAPI/Starlette errors) into
responses. Stack traces are logged, never returned.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sge.core.logging import get_logger

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Exception Classes
# -----------------------------------------------------------------------------

class AppError(Exception):
    """Base class for errors with a defined HTTP representation."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind: str = "internal_error"

    def __init__(
        self,
        message: str,
        details: Any = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        self.extra = extra or {}


class ValidationError(AppError):
    """Missing or malformed request fields."""

    status_code = status.HTTP_400_BAD_REQUEST
    kind = "validation_error"


class AuthenticationError(AppError):
    """Missing, invalid or expired bearer token."""

    status_code = status.HTTP_401_UNAUTHORIZED
    kind = "authentication_error"


class NotOnboardedError(AppError):
    """Caller has no profile/organization yet."""

    status_code = status.HTTP_400_BAD_REQUEST
    kind = "not_onboarded"


class AlreadyOnboardedError(AppError):
    """A profile already exists for this user identity."""

    status_code = status.HTTP_400_BAD_REQUEST
    kind = "already_onboarded"


class UpstreamServiceError(AppError):
    """Supabase or the completion API failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind = "upstream_error"

    def __init__(
        self,
        message: str,
        details: Any = None,
        extra: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message, details=details, extra=extra)
        # Postgres / PostgREST error code, e.g. "23505"
        self.code = code


class InternalError(AppError):
    """Unexpected failure."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind = "internal_error"


# -----------------------------------------------------------------------------
# Response Helpers
# -----------------------------------------------------------------------------

def create_error_response(
    status_code: int,
    error: str,
    kind: str,
    details: Any = None,
    extra: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """
    Build the JSON error envelope.

    Args:
        status_code: HTTP status code
        error: Human-readable summary
        kind: Machine-readable error kind
        details: Optional detail (string or list of field errors)
        extra: Additional top-level fields, e.g. {"userId": ...}
    """
    content: Dict[str, Any] = {"error": error, "kind": kind}
    if details is not None:
        content["details"] = details
    if extra:
        content.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def error_response_from(exc: AppError) -> JSONResponse:
    return create_error_response(
        status_code=exc.status_code,
        error=exc.message,
        kind=exc.kind,
        details=exc.details,
        extra=exc.extra,
    )


_HTTP_KINDS = {
    400: "validation_error",
    401: "authentication_error",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


# -----------------------------------------------------------------------------
# Handler Registration
# -----------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """Attach the JSON error handlers to the application."""

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "%s %s failed: %s (%s)",
                request.method,
                request.url.path,
                exc.message,
                exc.details,
            )
        else:
            logger.info(
                "%s %s rejected: %s",
                request.method,
                request.url.path,
                exc.message,
            )
        return error_response_from(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        field_errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        return create_error_response(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Invalid request",
            kind="validation_error",
            details=field_errors,
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        kind = _HTTP_KINDS.get(exc.status_code, "error")
        return create_error_response(
            status_code=exc.status_code,
            error=str(exc.detail),
            kind=kind,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return create_error_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="Internal Server Error",
            kind=InternalError.kind,
        )
