from dataclasses import dataclass
from starlette.datastructures import UploadFile
from pydantic import BaseModel
from typing import Optional


@dataclass
class UploadedAudio:
    """
    A recording received by one /process-audio request.

    `stream` is the spooled multipart file (None when the field was
    missing); `size` is None when the transport did not report it.
    """
    filename: Optional[str]
    content_type: Optional[str]
    stream: Optional[UploadFile]
    size: Optional[int] = None

    @classmethod
    def from_upload(cls, upload: Optional[UploadFile]) -> "UploadedAudio":
        if upload is None:
            return cls(filename=None, content_type=None, stream=None)
        return cls(
            filename=upload.filename,
            content_type=upload.content_type,
            stream=upload,
            size=upload.size,
        )


class HealthResponse(BaseModel):
    status: str
    timestamp: str


class ValidationErrorResponse(BaseModel):
    error: str
    message: str


class RateLimitResponse(BaseModel):
    error: str
    retryAfter: int


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
