from fastapi import APIRouter, Depends, Request
from starlette.exceptions import HTTPException
from starlette.datastructures import UploadFile

from meeting_minutes.api.deps import enforce_rate_limit, get_pipeline
from meeting_minutes.core.errors import ValidationError
from meeting_minutes.schemas.audio import (
    ErrorResponse,
    RateLimitResponse,
    UploadedAudio,
    ValidationErrorResponse,
)
from meeting_minutes.schemas.minutes import ProcessingResult
from meeting_minutes.services.pipeline import ProcessingPipeline
from meeting_minutes.services.validation import check_content_length, limit_body

router = APIRouter(tags=["audio"])

AUDIO_FIELD = "audio"


@router.post(
    "/process-audio",
    response_model=ProcessingResult,
    response_model_exclude_none=True,
    responses={
        400: {"model": ValidationErrorResponse},
        429: {"model": RateLimitResponse},
        500: {"model": ErrorResponse},
    },
    dependencies=[Depends(enforce_rate_limit)],
)
async def process_audio(
    request: Request,
    pipeline: ProcessingPipeline = Depends(get_pipeline),
):
    """
    Transcribe a meeting recording and turn it into meeting minutes.

    **Form field:** `audio`, a single audio file (webm, wav, mp3, ogg, m4a, ...)
    of at most 25MB.

    The form is parsed inside the handler rather than declared as a
    parameter so the rate limit and size checks run before the body is read.
    """
    check_content_length(request.headers.get("content-length"), pipeline.max_bytes)
    limited = Request(request.scope, receive=limit_body(request.receive, pipeline.max_bytes))

    try:
        async with limited.form(max_files=1) as form:
            field = form.get(AUDIO_FIELD)
            upload = field if isinstance(field, UploadFile) else None
            return await pipeline.process(UploadedAudio.from_upload(upload))
    except HTTPException as e:
        # Malformed multipart body or more than one file
        raise ValidationError("Invalid upload", str(e.detail)) from e
