import structlog
from fastapi import Request
from fastapi.responses import JSONResponse, Response

from marginalia.errors import (
    ConflictError,
    NotFoundError,
    RateLimitedError,
    StorageUnavailableError,
    TransientError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

RETRY_AFTER_SECONDS = "1"


def create_json_error_response(
    status_code: int, message: str, error_type: str | None = None, headers: dict[str, str] | None = None
) -> JSONResponse:
    """Create JSON error response with optional type for machine parsing."""
    content = {"message": message}
    if error_type:
        content["type"] = error_type
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def user_error_handler(_: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    headers = {"Retry-After": RETRY_AFTER_SECONDS} if isinstance(exc, TransientError) else None

    if isinstance(exc, NotFoundError):
        status_code = 404
        error_type = "not_found"
    elif isinstance(exc, ValidationError):
        status_code = 400
        error_type = "validation_error"
    elif isinstance(exc, RateLimitedError):
        status_code = 429
        error_type = "rate_limited"
    elif isinstance(exc, ConflictError):
        status_code = 409
        error_type = "conflict"
    elif isinstance(exc, StorageUnavailableError):
        status_code = 503
        error_type = "storage_unavailable"
    else:
        # Default for any other UserError subclass
        status_code = 400
        error_type = "bad_request"

    return create_json_error_response(status_code=status_code, message=str(exc), error_type=error_type, headers=headers)


async def general_exception_handler(_: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500)."""
    logger.exception("unexpected_error", error=str(exc))
    return create_json_error_response(
        status_code=500, message="An unexpected error occurred.", error_type="internal_server_error"
    )
