"""Tests for the transcription and response clients."""

from unittest.mock import Mock

import pytest

from voice_chat.config.settings import RetrySettings
from voice_chat.core.clients import ResponseClient, TranscriptionClient
from voice_chat.errors import (
    CaptureError,
    ResponseError,
    TranscriptionError,
    UpstreamError,
)
from voice_chat.models import AudioSegment, Role, Turn
from voice_chat.providers.stt.base import Transcript

from .doubles import FakeAI, FakeSTT


class TestTranscriptionClient:
    """Tests for TranscriptionClient."""

    def setup_method(self):
        """Set up test fixtures."""
        self.provider = Mock()
        self.provider.transcribe.return_value = Transcript(text="hello", timestamp=0.0)
        self.sleep = Mock()
        self.client = TranscriptionClient(self.provider, sleep=self.sleep)

    def test_transcribe_passes_audio_and_mime_type(self):
        segment = AudioSegment(b"x" * 600, "audio/webm")

        assert self.client.transcribe(segment) == "hello"
        self.provider.transcribe.assert_called_once_with(b"x" * 600, "audio/webm")

    def test_undersized_segment_rejected_locally(self):
        """The size precondition is checked before any upstream call."""
        with pytest.raises(CaptureError, match="too short"):
            self.client.transcribe(AudioSegment(b"x" * 499))
        self.provider.transcribe.assert_not_called()

    def test_transient_failure_retried_once(self):
        """A 503 is retried once and the second attempt wins."""
        self.provider.transcribe.side_effect = [
            UpstreamError("Transcription failed: 503", status=503, retryable=True),
            Transcript(text="hello", timestamp=0.0),
        ]

        assert self.client.transcribe(AudioSegment(b"x" * 600)) == "hello"
        assert self.provider.transcribe.call_count == 2
        self.sleep.assert_called_once_with(0.5)

    def test_retry_exhausted_raises_transcription_error(self):
        self.provider.transcribe.side_effect = UpstreamError(
            "Transcription failed: timed out", retryable=True
        )

        with pytest.raises(TranscriptionError, match="timed out") as exc_info:
            self.client.transcribe(AudioSegment(b"x" * 600))

        assert self.provider.transcribe.call_count == 2
        assert exc_info.value.status is None

    def test_client_error_not_retried(self):
        """A 400 from upstream fails immediately with its status."""
        self.provider.transcribe.side_effect = UpstreamError(
            "Transcription failed: 400 Invalid file format", status=400
        )

        with pytest.raises(TranscriptionError) as exc_info:
            self.client.transcribe(AudioSegment(b"x" * 600))

        assert exc_info.value.status == 400
        assert self.provider.transcribe.call_count == 1
        self.sleep.assert_not_called()

    def test_unexpected_exception_wrapped(self):
        self.provider.transcribe.side_effect = RuntimeError("not initialized")

        with pytest.raises(TranscriptionError, match="not initialized"):
            self.client.transcribe(AudioSegment(b"x" * 600))

    def test_custom_threshold(self):
        client = TranscriptionClient(FakeSTT(), min_segment_bytes=10)
        assert client.transcribe(AudioSegment(b"x" * 10)) == "hello"


class TestResponseClient:
    """Tests for ResponseClient."""

    def setup_method(self):
        """Set up test fixtures."""
        self.provider = FakeAI("hi there")
        self.client = ResponseClient(self.provider, retries=RetrySettings(initial_backoff=0))

    def test_turn_order_preserved(self):
        turns = [
            Turn(Role.USER, "a"),
            Turn(Role.ASSISTANT, "b"),
            Turn(Role.USER, "c"),
        ]

        assert self.client.respond(turns) == "hi there"
        assert self.provider.calls == [tuple(turns)]

    @pytest.mark.parametrize("turns", [
        [],
        [Turn(Role.USER, "a"), Turn(Role.ASSISTANT, "b")],
    ])
    def test_must_end_with_user_turn(self, turns):
        with pytest.raises(ValueError):
            self.client.respond(turns)
        assert self.provider.calls == []

    def test_upstream_error_becomes_response_error(self):
        self.provider.error = UpstreamError("Response failed: 401 bad key", status=401)

        with pytest.raises(ResponseError, match="401 bad key") as exc_info:
            self.client.respond([Turn(Role.USER, "a")])

        assert exc_info.value.status == 401
        assert len(self.provider.calls) == 1

    def test_rate_limit_retried(self):
        self.provider.error = UpstreamError("Response failed: 429", status=429, retryable=True)

        with pytest.raises(ResponseError):
            self.client.respond([Turn(Role.USER, "a")])

        assert len(self.provider.calls) == 2
