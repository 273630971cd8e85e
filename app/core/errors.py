"""Domain exceptions and the handlers that turn them into JSON responses."""

from typing import Any

from fastapi import FastAPI
from fastapi import Request
from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.custom_logging import logger


class AudioAPIError(Exception):
    """Base class for errors reported to the caller with a fixed status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "Internal server error"
    headers: dict[str, str] | None = None

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.detail)
        if detail is not None:
            self.detail = detail


class AudioValidationError(AudioAPIError):
    """Missing or malformed field, or a value outside an enumerated set."""

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Validation failed."

    def __init__(self, detail: str | None = None, errors: list[dict[str, Any]] | None = None):
        super().__init__(detail)
        self.errors = errors or []


class AuthError(AudioAPIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Could not validate credentials"
    headers = {"WWW-Authenticate": "Bearer"}


class PermissionDeniedError(AudioAPIError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Not enough permissions"


class AudioNotFoundError(AudioAPIError):
    """Raised both for absent records and for records the caller may not see."""

    status_code = status.HTTP_404_NOT_FOUND
    detail = "Audio not found"


class UserNotFoundError(AudioAPIError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "User not found"


class ConflictError(AudioAPIError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Resource already exists"


class FileTooLargeError(AudioAPIError):
    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    detail = "File too large"


class StorageError(AudioAPIError):
    """The storage backend could not persist an object."""

    status_code = status.HTTP_502_BAD_GATEWAY
    detail = "Storage backend unavailable"


def field_errors(exc: Exception) -> list[dict[str, Any]]:
    """Flatten pydantic / FastAPI validation errors into ``{field, message}`` pairs."""
    errors = []
    for err in exc.errors():  # type: ignore[attr-defined]
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc) or None, "message": err.get("msg", "")})
    return errors


async def audio_api_error_handler(request: Request, exc: AudioAPIError) -> JSONResponse:
    content: dict[str, Any] = {"detail": exc.detail}
    if isinstance(exc, AudioValidationError) and exc.errors:
        content["errors"] = exc.errors
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed.", "errors": field_errors(exc)},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc!r}",
        exc_info=exc,
    )
    detail = str(exc) if settings.DEBUG else "Internal server error"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": detail}
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AudioAPIError, audio_api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
