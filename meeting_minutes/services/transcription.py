import io
from typing import Optional

import assemblyai as aai
import structlog

from meeting_minutes.core.config import ASSEMBLYAI_API_KEY, TRANSCRIPT_LANGUAGE_CODE
from meeting_minutes.core.errors import UpstreamError

logger = structlog.get_logger(__name__)

aai.settings.api_key = ASSEMBLYAI_API_KEY


class TranscriptionClient:
    """
    Speech-to-text through AssemblyAI.

    One upstream call per `transcribe`; nothing is retried and the text
    comes back exactly as the service produced it.

    AssemblyAI detects the container format from the audio bytes, so the
    SDK is never told the MIME type. `mime_type` is only logged.
    """

    def __init__(
        self,
        transcriber: Optional[aai.Transcriber] = None,
        language_code: str = TRANSCRIPT_LANGUAGE_CODE,
    ):
        if transcriber is None:
            config = aai.TranscriptionConfig(
                speech_models=["universal"],
                language_code=language_code,
                punctuate=True,
                format_text=True,
            )
            transcriber = aai.Transcriber(config=config)
        self.transcriber = transcriber

    def transcribe(self, audio_bytes: bytes, mime_type: str) -> str:
        logger.info(
            "transcription_started",
            mime_type=mime_type,
            size_mb=round(len(audio_bytes) / (1024 * 1024), 2),
        )

        try:
            transcript = self.transcriber.transcribe(io.BytesIO(audio_bytes))
        except Exception as e:
            raise UpstreamError(f"Failed to transcribe audio: {e}") from e

        if transcript.status == aai.TranscriptStatus.error:
            raise UpstreamError(f"Failed to transcribe audio: {transcript.error}")

        return transcript.text or ""
