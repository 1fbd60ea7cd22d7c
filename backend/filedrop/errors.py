"""Service exceptions and the FastAPI handlers that turn them into responses.

Services raise FileDropError subclasses; each one knows its HTTP status and
carries a short human-readable message that the admin UI shows verbatim.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

ADMIN_REALM = 'Basic realm="Admin Area"'


class FileDropError(Exception):
    """Base class for every error the API reports to clients."""

    status_code = 500
    message = "Internal server error."

    def __init__(self, message: Optional[str] = None, headers: Optional[dict] = None):
        self.message = message or self.message
        self.headers = headers
        super().__init__(self.message)


# ── Validation ───────────────────────────────────────────────────

class InvalidInput(FileDropError):
    status_code = 400
    message = "Invalid input."


class PayloadTooLarge(InvalidInput):
    def __init__(self, limit_mb: int):
        self.limit_mb = limit_mb
        super().__init__(f"File too large. Max size is {limit_mb}MB.")


class FileCountExceeded(InvalidInput):
    message = "Only one file can be uploaded per request."


class NoFileUploaded(InvalidInput):
    message = "No file uploaded."


# ── Content policy ───────────────────────────────────────────────

class ForbiddenContent(FileDropError):
    status_code = 400
    message = "File type not allowed."


class ForbiddenExtension(ForbiddenContent):
    def __init__(self, extension: str):
        self.extension = extension
        super().__init__(f"File extension '{extension}' is not allowed for security reasons.")


class ForbiddenMimeType(ForbiddenContent):
    def __init__(self, mime_type: str):
        self.mime_type = mime_type
        super().__init__(f"File type '{mime_type}' is not allowed.")


# ── Lookup ───────────────────────────────────────────────────────

class FileNotFound(FileDropError):
    status_code = 404
    message = "File not found."


class FileGone(FileDropError):
    status_code = 410
    message = "File has expired and is no longer available."


class StorageIntegrityFault(FileNotFound):
    """Metadata row exists but its blob does not."""
    message = "File not found on server storage."


# ── Persistence / storage ────────────────────────────────────────

class PersistenceFailure(FileDropError):
    status_code = 500
    message = "Database operation failed."


class MetadataWriteFailed(PersistenceFailure):
    message = "Failed to save file information."


class StorageFailure(FileDropError):
    status_code = 500
    message = "File storage operation failed."


# ── Access control ───────────────────────────────────────────────

class Unauthorized(FileDropError):
    status_code = 401
    message = "Authentication required."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": ADMIN_REALM})


class RateLimited(FileDropError):
    status_code = 429
    message = "Too many uploads. Please try again later."


# ── Handlers ─────────────────────────────────────────────────────

def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc)
        parts.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return "Invalid input: " + "; ".join(parts)


async def filedrop_error_handler(request: Request, exc: FileDropError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message},
        headers=exc.headers,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework errors (unknown route, wrong method, unparseable body) in the API shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = _describe_validation_error(exc)
    logger.warning("Rejected request to %s: %s", request.url.path, message)
    return JSONResponse(status_code=400, content={"message": message})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error."})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FileDropError, filedrop_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
