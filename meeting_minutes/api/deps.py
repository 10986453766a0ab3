from functools import lru_cache

from fastapi import Depends, Request

from meeting_minutes.core.config import (
    MAX_UPLOAD_BYTES,
    RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
    UPLOAD_DIR,
)
from meeting_minutes.core.errors import RateLimited
from meeting_minutes.services.minutes import MinutesGenerator
from meeting_minutes.services.pipeline import ProcessingPipeline
from meeting_minutes.services.rate_limiter import RateLimiter
from meeting_minutes.services.transcription import TranscriptionClient


@lru_cache
def get_rate_limiter() -> RateLimiter:
    return RateLimiter(
        max_requests=RATE_LIMIT_MAX_REQUESTS,
        window_seconds=RATE_LIMIT_WINDOW_SECONDS,
    )


@lru_cache
def get_pipeline() -> ProcessingPipeline:
    return ProcessingPipeline(
        transcriber=TranscriptionClient(),
        summarizer=MinutesGenerator(),
        upload_dir=UPLOAD_DIR,
        max_bytes=MAX_UPLOAD_BYTES,
        timeout_seconds=REQUEST_TIMEOUT_SECONDS,
    )


def get_client_id(request: Request) -> str:
    """Client identity for rate limiting: the peer address."""
    return request.client.host if request.client else "unknown"


def enforce_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """
    Admit the request or raise RateLimited.

    Runs before the multipart body is read, so rejected clients never
    get to upload anything.
    """
    decision = limiter.admit(get_client_id(request))
    if not decision.allowed:
        raise RateLimited(decision.retry_after)

