"""
Shared fixtures: fake upstream capabilities, upload builders and a
TestClient wired to them. Nothing here touches the network.
"""

import io
import time

import pytest
from fastapi.testclient import TestClient
from starlette.datastructures import Headers, UploadFile

from meeting_minutes.api.deps import get_pipeline, get_rate_limiter
from meeting_minutes.main import app
from meeting_minutes.schemas.audio import UploadedAudio
from meeting_minutes.schemas.minutes import MeetingMinutes
from meeting_minutes.services.pipeline import ProcessingPipeline
from meeting_minutes.services.rate_limiter import RateLimiter

SAMPLE_TRANSCRIPT = "Good morning everyone.\nWe agreed to ship the beta on Friday."


class FakeTranscriber:
    def __init__(self, text=SAMPLE_TRANSCRIPT, error=None, delay=0.0):
        self.text = text
        self.error = error
        self.delay = delay
        self.calls = []

    def transcribe(self, audio_bytes, mime_type):
        self.calls.append((audio_bytes, mime_type))
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return self.text


class FakeSummarizer:
    def __init__(self, minutes=None, error=None):
        self.minutes = minutes or MeetingMinutes(
            title="Beta planning",
            summary="The team set the beta release date.",
            keyPoints=["Beta scope is frozen"],
            decisions=["Ship the beta on Friday"],
            actionItems=["Lan prepares release notes by Thursday"],
        )
        self.error = error
        self.calls = []

    def summarize(self, transcript):
        self.calls.append(transcript)
        if self.error:
            raise self.error
        return self.minutes


def make_upload(data=b"\x1aE\xdf\xa3" * 512, filename="meeting.webm", content_type="audio/webm", size=None):
    stream = UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        size=len(data) if size is None else size,
        headers=Headers({"content-type": content_type}),
    )
    return UploadedAudio.from_upload(stream)


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def transcriber():
    return FakeTranscriber()


@pytest.fixture
def summarizer():
    return FakeSummarizer()


@pytest.fixture
def pipeline(transcriber, summarizer, upload_dir):
    return ProcessingPipeline(
        transcriber=transcriber,
        summarizer=summarizer,
        upload_dir=str(upload_dir),
        timeout_seconds=5,
    )


@pytest.fixture
def rate_limiter():
    return RateLimiter(max_requests=10, window_seconds=60)


@pytest.fixture
def client(pipeline, rate_limiter):
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
