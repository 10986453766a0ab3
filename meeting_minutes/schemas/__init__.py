from meeting_minutes.schemas.audio import (
    UploadedAudio,
    HealthResponse,
    ValidationErrorResponse,
    RateLimitResponse,
    ErrorResponse,
)
from meeting_minutes.schemas.minutes import MeetingMinutes, ProcessingMetadata, ProcessingResult

__all__ = [
    "UploadedAudio",
    "HealthResponse",
    "ValidationErrorResponse",
    "RateLimitResponse",
    "ErrorResponse",
    "MeetingMinutes",
    "ProcessingMetadata",
    "ProcessingResult",
]
