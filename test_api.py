"""
HTTP tests for /process-audio and /health

Upstream capabilities are replaced with fakes via dependency overrides
(see conftest.py), so no request leaves the process.
"""
import os

import pytest

from meeting_minutes.core import config
from meeting_minutes.core.errors import ParseError, ProcessingTimeout, UpstreamError
from meeting_minutes.schemas.audio import UploadedAudio
from meeting_minutes.schemas.minutes import MeetingMinutes

WEBM = ("meeting.webm", b"\x1aE\xdf\xa3" * 512, "audio/webm")
BOUNDARY = "meetingminutesboundary"


def chunked_multipart(chunks, chunk_size=64 * 1024):
    """Multipart body with one audio part, yielded piece by piece (no Content-Length)."""
    yield (
        f"--{BOUNDARY}\r\n"
        'Content-Disposition: form-data; name="audio"; filename="long.webm"\r\n'
        "Content-Type: audio/webm\r\n\r\n"
    ).encode()
    for _ in range(chunks):
        yield b"x" * chunk_size
    yield f"\r\n--{BOUNDARY}--\r\n".encode()


@pytest.fixture
def parsed_uploads(monkeypatch):
    """Records every upload that made it out of the multipart parser."""
    seen = []
    original = UploadedAudio.from_upload

    def spy(upload):
        seen.append(upload)
        return original(upload)

    monkeypatch.setattr(UploadedAudio, "from_upload", spy)
    return seen


class TestProcessAudio:
    def test_success_shape(self, client, upload_dir):
        response = client.post("/process-audio", files={"audio": WEBM})

        assert response.status_code == 200
        body = response.json()
        assert set(body) == {"transcript", "minutes", "metadata"}
        assert body["minutes"] == {
            "title": "Beta planning",
            "summary": "The team set the beta release date.",
            "keyPoints": ["Beta scope is frozen"],
            "decisions": ["Ship the beta on Friday"],
            "actionItems": ["Lan prepares release notes by Thursday"],
        }
        assert body["metadata"]["fileSize"] == "0.00 MB"
        assert body["metadata"]["processingTime"].endswith("s")
        assert os.listdir(upload_dir) == []

    def test_absent_title_and_summary_are_omitted(self, client, summarizer):
        summarizer.minutes = MeetingMinutes(decisions=["Keep going"])

        body = client.post("/process-audio", files={"audio": WEBM}).json()

        assert body["minutes"] == {"keyPoints": [], "decisions": ["Keep going"], "actionItems": []}

    def test_image_upload_is_rejected_without_upstream_calls(self, client, transcriber, summarizer, upload_dir):
        response = client.post(
            "/process-audio",
            files={"audio": ("photo.png", b"\x89PNG" * 100, "image/png")},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Only audio files are allowed"
        assert "message" in response.json()
        assert transcriber.calls == []
        assert summarizer.calls == []
        assert os.listdir(upload_dir) == []

    def test_missing_file_is_rejected(self, client):
        response = client.post("/process-audio", data={"note": "no file here"})

        assert response.status_code == 400
        assert response.json() == {
            "error": "Audio file not found",
            "message": "Please choose an audio file to upload",
        }

    def test_more_than_one_file_is_rejected(self, client, transcriber):
        response = client.post(
            "/process-audio",
            files=[("audio", WEBM), ("audio", WEBM)],
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid upload"
        assert transcriber.calls == []

    def test_oversized_upload_is_rejected_and_removed(self, client, pipeline, transcriber, upload_dir):
        pipeline.max_bytes = 1024

        response = client.post(
            "/process-audio",
            files={"audio": ("long.webm", b"x" * 4096, "audio/webm")},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "File too large"
        assert transcriber.calls == []
        assert os.listdir(upload_dir) == []

    def test_chunked_oversize_body_is_rejected_before_parsing(
        self, client, pipeline, transcriber, parsed_uploads, upload_dir
    ):
        pipeline.max_bytes = 1024

        response = client.post(
            "/process-audio",
            content=chunked_multipart(chunks=16),
            headers={"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"},
        )

        assert "content-length" not in response.request.headers
        assert response.status_code == 400
        assert response.json()["error"] == "File too large"
        assert parsed_uploads == []
        assert transcriber.calls == []
        assert os.listdir(upload_dir) == []

    def test_chunked_body_within_ceiling_is_processed(self, client, transcriber, parsed_uploads):
        response = client.post(
            "/process-audio",
            content=chunked_multipart(chunks=2, chunk_size=1024),
            headers={"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"},
        )

        assert response.status_code == 200
        assert len(parsed_uploads) == 1
        assert transcriber.calls[0][0] == b"x" * 2048

    def test_oversize_content_length_is_rejected_before_parsing(
        self, client, pipeline, transcriber, parsed_uploads
    ):
        pipeline.max_bytes = 1024

        response = client.post(
            "/process-audio",
            files={"audio": ("long.webm", b"x" * (256 * 1024), "audio/webm")},
        )

        assert int(response.request.headers["content-length"]) > 256 * 1024
        assert response.status_code == 400
        assert response.json()["error"] == "File too large"
        assert parsed_uploads == []
        assert transcriber.calls == []

    def test_transcription_failure_is_500_and_leaves_no_file(self, client, transcriber, summarizer, upload_dir):
        transcriber.error = UpstreamError("Failed to transcribe audio: 503 Service Unavailable")

        response = client.post("/process-audio", files={"audio": WEBM})

        assert response.status_code == 500
        assert response.json()["error"] == UpstreamError.message
        assert "503" in response.json()["details"]
        assert summarizer.calls == []
        assert os.listdir(upload_dir) == []

    def test_quota_failure_gets_its_own_message(self, client, transcriber):
        transcriber.error = UpstreamError("Failed to transcribe audio: quota exceeded")

        response = client.post("/process-audio", files={"audio": WEBM})

        assert response.status_code == 500
        assert response.json()["error"] == UpstreamError.quota_message

    def test_parse_failure_has_distinct_message(self, client, summarizer, upload_dir):
        summarizer.error = ParseError("Failed to parse meeting minutes JSON")

        response = client.post("/process-audio", files={"audio": WEBM})

        assert response.status_code == 500
        assert response.json()["error"] == ParseError.message
        assert response.json()["error"] != UpstreamError.message
        assert os.listdir(upload_dir) == []

    def test_timeout_has_distinct_message(self, client, pipeline, transcriber, upload_dir):
        transcriber.delay = 0.5
        pipeline.timeout_seconds = 0.05

        response = client.post("/process-audio", files={"audio": WEBM})

        assert response.status_code == 500
        assert response.json()["error"] == ProcessingTimeout.message
        assert os.listdir(upload_dir) == []

    def test_unexpected_error_is_generic_500(self, client, transcriber, upload_dir):
        transcriber.error = KeyError("surprise")

        response = client.post("/process-audio", files={"audio": WEBM})

        assert response.status_code == 500
        assert response.json()["error"] == UpstreamError.message
        assert os.listdir(upload_dir) == []

    def test_details_hidden_in_production(self, client, transcriber, monkeypatch):
        monkeypatch.setattr(config, "ENVIRONMENT", "production")
        transcriber.error = UpstreamError("Failed to transcribe audio: secret internals")

        response = client.post("/process-audio", files={"audio": WEBM})

        assert response.status_code == 500
        assert "details" not in response.json()


class TestRateLimit:
    def test_eleventh_request_within_a_second_is_429(self, client):
        statuses = [
            client.post("/process-audio", files={"audio": WEBM}).status_code
            for _ in range(11)
        ]

        assert statuses.count(429) == 1
        assert statuses[-1] == 429
        assert statuses[:10] == [200] * 10

    def test_429_body_and_header(self, client, rate_limiter):
        for _ in range(rate_limiter.max_requests):
            rate_limiter.admit("testclient")

        response = client.post("/process-audio", files={"audio": WEBM})

        assert response.status_code == 429
        body = response.json()
        assert set(body) == {"error", "retryAfter"}
        assert 1 <= body["retryAfter"] <= 60
        assert response.headers["Retry-After"] == str(body["retryAfter"])

    def test_rate_limit_checked_before_upload_is_processed(self, client, rate_limiter, transcriber):
        for _ in range(rate_limiter.max_requests):
            rate_limiter.admit("testclient")

        response = client.post(
            "/process-audio",
            files={"audio": ("photo.png", b"\x89PNG", "image/png")},
        )

        assert response.status_code == 429
        assert transcriber.calls == []

    def test_validation_failures_count_towards_limit(self, client):
        for _ in range(10):
            client.post("/process-audio", files={"audio": ("p.png", b"x", "image/png")})

        assert client.post("/process-audio", files={"audio": WEBM}).status_code == 429


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "OK"
        assert "T" in body["timestamp"]

    def test_health_is_not_rate_limited(self, client):
        statuses = {client.get("/health").status_code for _ in range(20)}
        assert statuses == {200}
