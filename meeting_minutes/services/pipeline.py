"""
Audio processing pipeline

validate -> persist to a temp file -> read -> transcribe -> summarize ->
metadata -> delete temp file

The temp file is owned by a context manager, so it is removed on every
exit path: success, validation failure, upstream failure, parse failure
and cancellation by the request timeout.
"""

import asyncio
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Protocol

import structlog

from meeting_minutes.core.config import MAX_UPLOAD_BYTES, REQUEST_TIMEOUT_SECONDS, UPSTREAM_WORKERS
from meeting_minutes.core.errors import ProcessingTimeout
from meeting_minutes.schemas.audio import UploadedAudio
from meeting_minutes.schemas.minutes import MeetingMinutes, ProcessingMetadata, ProcessingResult
from meeting_minutes.services.storage import read_upload, save_upload, temporary_upload
from meeting_minutes.services.validation import base_mime_type, check_size, validate_upload

logger = structlog.get_logger(__name__)


class Transcriber(Protocol):
    def transcribe(self, audio_bytes: bytes, mime_type: str) -> str: ...


class Summarizer(Protocol):
    def summarize(self, transcript: str) -> MeetingMinutes: ...


def format_file_size(size_bytes: int) -> str:
    return f"{size_bytes / (1024 * 1024):.2f} MB"


def format_duration(seconds: float) -> str:
    return f"{seconds:.2f}s"


class ProcessingPipeline:
    def __init__(
        self,
        transcriber: Transcriber,
        summarizer: Summarizer,
        upload_dir: Optional[str] = None,
        max_bytes: int = MAX_UPLOAD_BYTES,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
        max_workers: int = UPSTREAM_WORKERS,
    ):
        self.transcriber = transcriber
        self.summarizer = summarizer
        self.upload_dir = upload_dir
        self.max_bytes = max_bytes
        self.timeout_seconds = timeout_seconds
        self.max_workers = max_workers

        # SDK calls abandoned by the timeout keep their thread until they
        # return; a pool of our own keeps them off the loop's default executor
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="upstream")
        self._busy = 0
        self._busy_lock = threading.Lock()

    @property
    def busy_workers(self) -> int:
        with self._busy_lock:
            return self._busy

    def shutdown(self):
        self.executor.shutdown(wait=False, cancel_futures=True)

    def _tracked(self, fn: Callable[..., Any], *args: Any) -> Any:
        with self._busy_lock:
            self._busy += 1
        try:
            return fn(*args)
        finally:
            with self._busy_lock:
                self._busy -= 1

    async def call_upstream(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking SDK call on the upstream pool."""
        busy = self.busy_workers
        if busy >= self.max_workers:
            logger.warning(
                "upstream_executor_saturated",
                busy=busy,
                max_workers=self.max_workers,
                call=getattr(fn, "__qualname__", repr(fn)),
            )
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self._tracked, fn, *args)

    async def process(self, upload: UploadedAudio) -> ProcessingResult:
        """
        Run the whole pipeline for one upload within the wall-clock ceiling.

        Raises:
            ValidationError, UpstreamError, ParseError, ProcessingTimeout
        """
        try:
            return await asyncio.wait_for(self._run(upload), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise ProcessingTimeout(
                f"Processing exceeded {self.timeout_seconds:.0f}s"
            ) from e

    async def _run(self, upload: UploadedAudio) -> ProcessingResult:
        start_time = time.monotonic()

        # Always an audio/* type once validation has passed
        validate_upload(upload, self.max_bytes)
        mime_type = base_mime_type(upload.content_type)

        with temporary_upload(upload.filename, self.upload_dir) as path:
            await save_upload(upload.stream, path, self.max_bytes)
            size_bytes = os.path.getsize(path)
            check_size(size_bytes, self.max_bytes)

            log = logger.bind(file=os.path.basename(path), size=format_file_size(size_bytes))
            log.info("processing_audio", mime_type=mime_type)

            audio_bytes = await read_upload(path)

            transcript = await self.call_upstream(self.transcriber.transcribe, audio_bytes, mime_type)
            log.info("transcription_completed", chars=len(transcript))

            minutes = await self.call_upstream(self.summarizer.summarize, transcript)
            log.info("minutes_completed")

        processing_time = time.monotonic() - start_time
        logger.info("processing_completed", processing_time=format_duration(processing_time))

        return ProcessingResult(
            transcript=transcript,
            minutes=minutes,
            metadata=ProcessingMetadata(
                processing_time=format_duration(processing_time),
                file_size=format_file_size(size_bytes),
            ),
        )
