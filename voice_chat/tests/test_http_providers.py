"""Tests for providers that call a remote voice chat server."""

from unittest.mock import Mock, patch

import pytest
import requests

from voice_chat.errors import UpstreamError
from voice_chat.models import Role, Turn
from voice_chat.providers.ai.http import HttpAIProvider
from voice_chat.providers.stt.http import HttpSTTProvider
from voice_chat.providers.tts.http import HttpTTSProvider


def make_response(status: int = 200, json_body=None, content: bytes = b"", text: str = ""):
    response = Mock()
    response.status_code = status
    response.ok = status < 400
    response.content = content
    response.text = text
    if json_body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = json_body
    return response


class TestHttpSTTProvider:
    """Tests for HttpSTTProvider."""

    def setup_method(self):
        """Set up test fixtures."""
        self.provider = HttpSTTProvider(base_url="http://server:5000/api/", timeout=7)
        self.provider.initialize()
        self.provider.session = Mock()

    def test_transcribe_posts_raw_audio(self):
        self.provider.session.post.return_value = make_response(json_body={"transcription": "hello"})

        transcript = self.provider.transcribe(b"audio", "audio/webm")

        assert transcript.text == "hello"
        self.provider.session.post.assert_called_once_with(
            "http://server:5000/api/transcribe",
            data=b"audio",
            headers={"Content-Type": "audio/webm"},
            timeout=7,
        )

    def test_error_status_carried(self):
        self.provider.session.post.return_value = make_response(
            400, json_body={"error": "Invalid file format"}
        )

        with pytest.raises(UpstreamError) as exc_info:
            self.provider.transcribe(b"audio", "audio/webm")

        assert exc_info.value.status == 400
        assert exc_info.value.retryable is False
        assert "Invalid file format" in str(exc_info.value)

    def test_server_error_is_retryable(self):
        self.provider.session.post.return_value = make_response(503, text="Service Unavailable")

        with pytest.raises(UpstreamError) as exc_info:
            self.provider.transcribe(b"audio", "audio/webm")

        assert exc_info.value.retryable is True

    def test_timeout_is_retryable(self):
        self.provider.session.post.side_effect = requests.Timeout("read timed out")

        with pytest.raises(UpstreamError) as exc_info:
            self.provider.transcribe(b"audio", "audio/webm")

        assert exc_info.value.retryable is True
        assert exc_info.value.status is None

    def test_missing_field(self):
        self.provider.session.post.return_value = make_response(json_body={"text": "hello"})

        with pytest.raises(UpstreamError, match="missing 'transcription'"):
            self.provider.transcribe(b"audio", "audio/webm")

    def test_not_initialized(self):
        provider = HttpSTTProvider()
        with pytest.raises(RuntimeError):
            provider.transcribe(b"audio", "audio/webm")


class TestHttpAIProvider:
    """Tests for HttpAIProvider."""

    def setup_method(self):
        """Set up test fixtures."""
        self.provider = HttpAIProvider(base_url="http://server:5000/api")
        self.provider.initialize()
        self.provider.session = Mock()

    def test_generate_posts_text_and_history(self):
        self.provider.session.post.return_value = make_response(json_body={"response": "hi there"})
        turns = [Turn(Role.USER, "hello")]

        assert self.provider.generate(turns) == "hi there"

        self.provider.session.post.assert_called_once_with(
            "http://server:5000/api/respond",
            json={
                "text": "hello",
                "conversationHistory": [{"role": "user", "content": "hello"}],
            },
            timeout=30.0,
        )

    def test_requires_user_turn_last(self):
        with pytest.raises(ValueError):
            self.provider.generate([Turn(Role.USER, "a"), Turn(Role.ASSISTANT, "b")])

    def test_connection_error(self):
        self.provider.session.post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(UpstreamError) as exc_info:
            self.provider.generate([Turn(Role.USER, "hello")])

        assert exc_info.value.retryable is True


class TestHttpTTSProvider:
    """Tests for HttpTTSProvider."""

    def setup_method(self):
        """Set up test fixtures."""
        self.player = Mock()
        self.provider = HttpTTSProvider(base_url="http://server:5000/api", player=self.player)
        self.provider.initialize()
        self.provider.session = Mock()

    def test_synthesize_fetches_audio_url(self):
        self.provider.session.request.side_effect = [
            make_response(json_body={"audioUrl": "/api/audio/abc", "format": "mp3"}),
            make_response(content=b"ID3audio"),
        ]

        assert self.provider.synthesize("hi") == b"ID3audio"

        calls = self.provider.session.request.call_args_list
        assert calls[0].args == ("POST", "http://server:5000/api/speak")
        assert calls[0].kwargs["json"] == {"text": "hi"}
        assert calls[1].args == ("GET", "http://server:5000/api/audio/abc")

    def test_play_chunk_feeds_player(self):
        self.provider.session.request.side_effect = [
            make_response(json_body={"audioUrl": "/api/audio/abc"}),
            make_response(content=b"ID3audio"),
        ]

        for chunk in self.provider.stream_audio("hi"):
            self.provider.play_chunk(chunk)

        assert self.player.feed.call_count == 2
        assert self.player.feed.call_args_list[-1].args[0].is_final

    def test_speak_failure(self):
        self.provider.session.request.return_value = make_response(
            500, json_body={"error": "tts down"}
        )

        with pytest.raises(UpstreamError, match="tts down"):
            self.provider.synthesize("hi")

    @patch("voice_chat.providers.tts.http.requests.Session")
    def test_stop_closes_session(self, mock_session_class):
        provider = HttpTTSProvider(player=self.player)
        provider.initialize()

        provider.stop()

        mock_session_class.return_value.close.assert_called_once()
        self.player.close.assert_called_once()
        assert provider.session is None
