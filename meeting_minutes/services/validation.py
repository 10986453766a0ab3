from typing import Optional

from meeting_minutes.core.config import MAX_UPLOAD_BYTES
from meeting_minutes.core.errors import ValidationError
from meeting_minutes.schemas.audio import UploadedAudio

ALLOWED_MIME_TYPES = {
    "audio/webm",
    "audio/wav",
    "audio/mp3",
    "audio/mpeg",
    "audio/ogg",
    "audio/m4a",
}

# Room for multipart boundaries and part headers on top of the file itself
MULTIPART_OVERHEAD_BYTES = 64 * 1024


def base_mime_type(content_type: Optional[str]) -> str:
    """'audio/webm;codecs=opus' -> 'audio/webm'"""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def is_audio_type(content_type: Optional[str]) -> bool:
    mime = base_mime_type(content_type)
    return mime in ALLOWED_MIME_TYPES or mime.startswith("audio/")


def missing_file_error() -> ValidationError:
    return ValidationError(
        "Audio file not found",
        "Please choose an audio file to upload",
    )


def too_large_error(max_bytes: int = MAX_UPLOAD_BYTES) -> ValidationError:
    return ValidationError(
        "File too large",
        f"File size must not exceed {max_bytes // (1024 * 1024)}MB",
    )


def check_size(size: Optional[int], max_bytes: int = MAX_UPLOAD_BYTES):
    if size is not None and size > max_bytes:
        raise too_large_error(max_bytes)


def validate_upload(upload: Optional[UploadedAudio], max_bytes: int = MAX_UPLOAD_BYTES):
    """
    Reject unusable uploads before any bytes are written to disk.

    Checks run in order: presence, audio content type, size.
    Raises ValidationError; returns None when the upload is acceptable.
    """
    if upload is None or upload.stream is None or (not upload.filename and not upload.size):
        raise missing_file_error()

    if not is_audio_type(upload.content_type):
        raise ValidationError(
            "Only audio files are allowed",
            f"Unsupported file type: {upload.content_type or 'unknown'}",
        )

    check_size(upload.size, max_bytes)


def check_content_length(content_length: Optional[str], max_bytes: int = MAX_UPLOAD_BYTES):
    """
    Transport-level ceiling: refuse a request body that is obviously too
    big before it is read at all.
    """
    if not content_length:
        return
    try:
        length = int(content_length)
    except ValueError:
        return
    if length > max_bytes + MULTIPART_OVERHEAD_BYTES:
        raise too_large_error(max_bytes)


def limit_body(receive, max_bytes: int = MAX_UPLOAD_BYTES):
    """
    Wrap an ASGI `receive` callable so the request body is counted as it
    arrives. Covers chunked uploads, which carry no Content-Length.

    Raises:
        ValidationError ("File too large") from the first message that
        takes the body past the ceiling plus multipart overhead
    """
    limit = max_bytes + MULTIPART_OVERHEAD_BYTES
    received = 0

    async def limited_receive():
        nonlocal received
        message = await receive()
        if message["type"] == "http.request":
            received += len(message.get("body", b""))
            if received > limit:
                raise too_large_error(max_bytes)
        return message

    return limited_receive
