"""
Error taxonomy for audio processing.

Every failure the pipeline can report derives from ProcessingError and
knows its own HTTP status and response body, so the route layer only has
to hand it to the registered exception handler.
"""

from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
import structlog

from meeting_minutes.core.config import is_production

logger = structlog.get_logger(__name__)

QUOTA_MARKERS = ("quota", "rate limit", "rate_limit", "too many requests")


class ProcessingError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "An error occurred while processing the audio file"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.message)
        self.detail = detail or self.message

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if not is_production():
            body["details"] = self.detail
        return body


class ValidationError(ProcessingError):
    """The upload itself is unusable; the user has to send something else."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid upload"

    def __init__(self, error: str, message: str):
        super().__init__(message)
        self.error = error
        self.user_message = message

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.user_message}


class RateLimited(ProcessingError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "Too many requests. Please try again later."

    def __init__(self, retry_after: int):
        super().__init__(f"Rate limit exceeded, retry after {retry_after}s")
        self.retry_after = retry_after

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message, "retryAfter": self.retry_after}


class UpstreamError(ProcessingError):
    """The external AI call failed or errored."""

    message = "An error occurred while processing the audio file"
    quota_message = "AI service quota exceeded. Please try again in a few minutes."

    def __init__(self, detail: str, quota_exceeded: Optional[bool] = None):
        super().__init__(detail)
        if quota_exceeded is None:
            quota_exceeded = looks_like_quota_error(detail)
        self.quota_exceeded = quota_exceeded

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        if self.quota_exceeded:
            body["error"] = self.quota_message
        return body


class ParseError(ProcessingError):
    """The external AI replied, but not with the JSON shape we asked for."""

    message = "The AI service returned meeting minutes in an unreadable format"


class ProcessingTimeout(ProcessingError):
    message = "Processing took too long. Please try a shorter recording."


def looks_like_quota_error(text: str) -> bool:
    lowered = (text or "").lower()
    return any(marker in lowered for marker in QUOTA_MARKERS)


async def processing_error_handler(request: Request, exc: ProcessingError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "processing_failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        detail=exc.detail,
    )

    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after)}

    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, error=str(exc))
    body: Dict[str, Any] = {"error": ProcessingError.message}
    if not is_production():
        body["details"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)
