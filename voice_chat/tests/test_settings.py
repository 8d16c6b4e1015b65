"""Tests for configuration settings."""

import json
import os
from unittest.mock import patch

import pytest

from voice_chat.config.settings import Settings


class TestSettings:
    """Tests for Settings."""

    def setup_method(self):
        """Set up test fixtures."""
        with patch.dict(os.environ, {}, clear=True):
            self.settings = Settings(load_env_file=False)

    def test_defaults(self):
        assert self.settings.audio.min_segment_bytes == 500
        assert self.settings.timeouts.transcription_timeout == 30.0
        assert self.settings.timeouts.response_timeout == 30.0
        assert self.settings.timeouts.speech_timeout == 15.0
        assert self.settings.retries.max_retries == 1
        assert self.settings.server.port == 5000
        assert self.settings.server.url_prefix == "/api"
        assert self.settings.stt_provider == "openai"
        assert self.settings.validate() == []

    def test_env_overrides(self):
        env = {
            "STT_PROVIDER": "whisperkit",
            "PORT": "8080",
            "MIN_SEGMENT_BYTES": "1000",
            "LOG_FILE_ENABLED": "false",
            "VOICE_CHAT_SERVER_URL": "http://remote:5000/api",
        }
        with patch.dict(os.environ, env, clear=True):
            self.settings.load_from_env()

        assert self.settings.stt_provider == "whisperkit"
        assert self.settings.server.port == 8080
        assert self.settings.audio.min_segment_bytes == 1000
        assert self.settings.logging.file_enabled is False
        assert self.settings.get_provider_config("http_stt")["base_url"] == "http://remote:5000/api"

    def test_invalid_env_value_ignored(self):
        with patch.dict(os.environ, {"PORT": "not-a-port"}, clear=True):
            self.settings.load_from_env()

        assert self.settings.server.port == 5000

    def test_file_round_trip_and_env_precedence(self, tmp_path):
        """Environment variables win over the config file."""
        config_file = tmp_path / "config.json"
        self.settings.ai_provider = "gemini"
        self.settings.providers.gemini_model = "gemini-1.5-flash"
        self.settings.server.port = 6000
        self.settings.save_to_file(config_file)

        with patch.dict(os.environ, {"PORT": "7000"}, clear=True):
            loaded = Settings(config_file, load_env_file=False)

        assert loaded.ai_provider == "gemini"
        assert loaded.providers.gemini_model == "gemini-1.5-flash"
        assert loaded.server.port == 7000
        assert json.loads(config_file.read_text())["server"]["port"] == 6000

    def test_corrupt_file_keeps_defaults(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with patch.dict(os.environ, {}, clear=True):
            loaded = Settings(config_file, load_env_file=False)

        assert loaded.server.port == 5000

    def test_validate_reports_issues(self):
        self.settings.audio.sample_rate = 12345
        self.settings.timeouts.response_timeout = 0
        self.settings.tts_provider = "nope"

        issues = self.settings.validate()

        assert "Invalid sample rate: 12345" in issues
        assert "Invalid response_timeout: 0" in issues
        assert "Unknown TTS provider: nope" in issues

    def test_provider_config(self):
        config = self.settings.get_provider_config("openai_chat")

        assert config["model"] == "gpt-4o-mini"
        assert config["timeout"] == 30.0
        assert config["system_prompt"] == self.settings.system_prompts.default
        assert self.settings.get_provider_config("http_tts")["timeout"] == 15.0
        assert self.settings.get_provider_config("elevenlabs")["timeout"] == 15.0

    def test_unknown_provider_config(self):
        with pytest.raises(ValueError):
            self.settings.get_provider_config("claude")

    def test_save_without_path(self):
        with pytest.raises(ValueError):
            self.settings.save_to_file()

    def test_stale_audio_keys_ignored(self, tmp_path):
        """Capture is fixed at 16-bit PCM; an old dtype entry has no effect."""
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"audio": {"dtype": "float32", "sample_rate": 8000}}))

        with patch.dict(os.environ, {}, clear=True):
            loaded = Settings(config_file, load_env_file=False)

        assert loaded.audio.sample_rate == 8000
        assert not hasattr(loaded.audio, "dtype")
