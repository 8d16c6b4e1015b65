"""Configuration settings for the voice chat pipeline."""

import os
import json
import threading
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Optional, Dict, Any, Union, Callable
import structlog
from dotenv import load_dotenv


logger = structlog.get_logger()


@dataclass
class SystemPrompts:
    """System prompts for AI providers."""
    default: str = (
        "You are a friendly voice assistant. Your replies are spoken aloud, "
        "so keep them short, conversational and free of markdown."
    )


@dataclass
class AudioSettings:
    """Microphone capture settings."""
    sample_rate: int = 16000
    channels: int = 1
    block_ms: int = 100
    min_segment_bytes: int = 500  # shorter clips are silence or noise


@dataclass
class ProviderSettings:
    """Provider-specific settings."""
    # OpenAI
    openai_stt_model: str = "whisper-1"
    openai_chat_model: str = "gpt-4o-mini"

    # WhisperKit
    whisperkit_model: str = "large-v3_turbo"
    whisperkit_compute_units: str = "cpuAndNeuralEngine"
    whisperkit_path: str = "/opt/homebrew/bin/whisperkit-cli"

    # Gemini
    gemini_model: str = "gemini-pro"
    gemini_temperature: float = 0.7
    gemini_max_tokens: int = 2048

    # ElevenLabs
    elevenlabs_voice_id: str = "pNInz6obpgDQGcFmaJgB"  # Adam voice
    elevenlabs_model_id: str = "eleven_flash_v2_5"
    elevenlabs_output_format: str = "mp3_22050_32"
    elevenlabs_stability: float = 0.5
    elevenlabs_similarity_boost: float = 0.8

    # Remote voice chat server
    http_base_url: str = "http://localhost:5000/api"


@dataclass
class TimeoutSettings:
    """Timeouts for upstream calls, in seconds."""
    transcription_timeout: float = 30.0
    response_timeout: float = 30.0
    speech_timeout: float = 15.0


@dataclass
class RetrySettings:
    """Retry policy for transient upstream failures."""
    max_retries: int = 1
    initial_backoff: float = 0.5  # seconds
    backoff_multiplier: float = 2.0
    max_backoff: float = 5.0  # seconds


@dataclass
class ServerSettings:
    """HTTP server settings."""
    host: str = "127.0.0.1"
    port: int = 5000
    url_prefix: str = "/api"
    max_audio_mb: int = 10
    audio_cache_size: int = 32


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = "INFO"
    format: str = "json"
    file_enabled: bool = True
    file_rotation_mb: int = 10
    file_backup_count: int = 7


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# Environment variable -> (section, field, converter)
ENV_OVERRIDES: Dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "SYSTEM_PROMPT_DEFAULT": ("system_prompts", "default", str),
    "AUDIO_SAMPLE_RATE": ("audio", "sample_rate", int),
    "AUDIO_CHANNELS": ("audio", "channels", int),
    "AUDIO_BLOCK_MS": ("audio", "block_ms", int),
    "MIN_SEGMENT_BYTES": ("audio", "min_segment_bytes", int),
    "OPENAI_STT_MODEL": ("providers", "openai_stt_model", str),
    "OPENAI_CHAT_MODEL": ("providers", "openai_chat_model", str),
    "WHISPERKIT_MODEL": ("providers", "whisperkit_model", str),
    "WHISPERKIT_COMPUTE_UNITS": ("providers", "whisperkit_compute_units", str),
    "WHISPERKIT_PATH": ("providers", "whisperkit_path", str),
    "GEMINI_MODEL": ("providers", "gemini_model", str),
    "GEMINI_TEMPERATURE": ("providers", "gemini_temperature", float),
    "GEMINI_MAX_TOKENS": ("providers", "gemini_max_tokens", int),
    "ELEVENLABS_VOICE_ID": ("providers", "elevenlabs_voice_id", str),
    "ELEVENLABS_MODEL_ID": ("providers", "elevenlabs_model_id", str),
    "ELEVENLABS_OUTPUT_FORMAT": ("providers", "elevenlabs_output_format", str),
    "VOICE_CHAT_SERVER_URL": ("providers", "http_base_url", str),
    "TRANSCRIPTION_TIMEOUT": ("timeouts", "transcription_timeout", float),
    "RESPONSE_TIMEOUT": ("timeouts", "response_timeout", float),
    "SPEECH_TIMEOUT": ("timeouts", "speech_timeout", float),
    "MAX_RETRIES": ("retries", "max_retries", int),
    "INITIAL_BACKOFF": ("retries", "initial_backoff", float),
    "HOST": ("server", "host", str),
    "PORT": ("server", "port", int),
    "MAX_AUDIO_MB": ("server", "max_audio_mb", int),
    "LOG_LEVEL": ("logging", "level", str),
    "LOG_FORMAT": ("logging", "format", str),
    "LOG_FILE_ENABLED": ("logging", "file_enabled", _as_bool),
}

SECTIONS = (
    "system_prompts",
    "audio",
    "providers",
    "timeouts",
    "retries",
    "server",
    "logging",
)

STT_PROVIDERS = ("openai", "whisperkit", "http", "mock")
AI_PROVIDERS = ("openai", "gemini", "http", "mock")
TTS_PROVIDERS = ("elevenlabs", "http", "mock")


class Settings:
    """Main settings class for the voice chat pipeline."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None,
                 load_env_file: bool = True):
        self.config_file = Path(config_file) if config_file else None
        self._lock = threading.RLock()
        self._env_loaded = not load_env_file

        self.system_prompts = SystemPrompts()
        self.audio = AudioSettings()
        self.providers = ProviderSettings()
        self.timeouts = TimeoutSettings()
        self.retries = RetrySettings()
        self.server = ServerSettings()
        self.logging = LoggingSettings()

        self.stt_provider = "openai"
        self.ai_provider = "openai"
        self.tts_provider = "elevenlabs"

        # .env first so that real environment variables still win
        self._load_env_file()

        if self.config_file and self.config_file.exists():
            self.load_from_file()

        self.load_from_env()

    def _load_env_file(self) -> None:
        """Load environment variables from the nearest .env file."""
        if self._env_loaded:
            return
        current_dir = Path.cwd()
        for parent in [current_dir] + list(current_dir.parents):
            env_file = parent / ".env"
            if env_file.exists():
                load_dotenv(env_file)
                logger.debug("Loaded .env file", path=str(env_file))
                break
        self._env_loaded = True

    def load_from_file(self) -> None:
        """Load settings from the JSON configuration file."""
        if not self.config_file or not self.config_file.exists():
            return

        try:
            with self._lock:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    config = json.load(f)

                for section_name in SECTIONS:
                    section_config = config.get(section_name)
                    if not isinstance(section_config, dict):
                        continue
                    section = getattr(self, section_name)
                    for key, value in section_config.items():
                        if hasattr(section, key):
                            setattr(section, key, value)

                for key in ("stt_provider", "ai_provider", "tts_provider"):
                    if key in config:
                        setattr(self, key, config[key])

                logger.info("Loaded settings from file", file=str(self.config_file))

        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load settings from file",
                         file=str(self.config_file),
                         error=str(e))

    def load_from_env(self) -> None:
        """Apply environment variable overrides."""
        with self._lock:
            self.stt_provider = os.getenv("STT_PROVIDER", self.stt_provider)
            self.ai_provider = os.getenv("AI_PROVIDER", self.ai_provider)
            self.tts_provider = os.getenv("TTS_PROVIDER", self.tts_provider)

            for env_name, (section_name, field_name, convert) in ENV_OVERRIDES.items():
                raw = os.getenv(env_name)
                if not raw:
                    continue
                try:
                    setattr(getattr(self, section_name), field_name, convert(raw))
                except ValueError:
                    logger.warning("Ignoring invalid environment value",
                                   variable=env_name, value=raw)

    def save_to_file(self, file_path: Optional[Union[str, Path]] = None) -> None:
        """Save current settings to a JSON file."""
        save_path = Path(file_path) if file_path else self.config_file
        if not save_path:
            raise ValueError("No file path provided")

        with self._lock:
            save_path.parent.mkdir(parents=True, exist_ok=True)
            with open(save_path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

        logger.info("Saved settings to file", file=str(save_path))

    def get_provider_config(self, provider: str) -> Dict[str, Any]:
        """Get constructor arguments for a specific provider implementation."""
        p = self.providers
        t = self.timeouts
        if provider == "openai_stt":
            return {"model": p.openai_stt_model, "timeout": t.transcription_timeout}
        elif provider == "whisperkit":
            return {
                "model": p.whisperkit_model,
                "compute_units": p.whisperkit_compute_units,
                "whisperkit_path": p.whisperkit_path,
                "timeout": t.transcription_timeout,
            }
        elif provider == "openai_chat":
            return {
                "system_prompt": self.system_prompts.default,
                "model": p.openai_chat_model,
                "timeout": t.response_timeout,
            }
        elif provider == "gemini":
            return {
                "system_prompt": self.system_prompts.default,
                "model_name": p.gemini_model,
                "temperature": p.gemini_temperature,
                "max_tokens": p.gemini_max_tokens,
                "timeout": t.response_timeout,
            }
        elif provider == "elevenlabs":
            return {
                "voice_id": p.elevenlabs_voice_id,
                "model_id": p.elevenlabs_model_id,
                "output_format": p.elevenlabs_output_format,
                "stability": p.elevenlabs_stability,
                "similarity_boost": p.elevenlabs_similarity_boost,
                "timeout": t.speech_timeout,
            }
        elif provider in ("http_stt", "http_ai", "http_tts"):
            timeout = {
                "http_stt": t.transcription_timeout,
                "http_ai": t.response_timeout,
                "http_tts": t.speech_timeout,
            }[provider]
            return {"base_url": p.http_base_url, "timeout": timeout}
        else:
            raise ValueError(f"Unknown provider type: {provider}")

    def reload(self) -> None:
        """Reload settings from file and environment."""
        with self._lock:
            if self.config_file and self.config_file.exists():
                self.load_from_file()
            self.load_from_env()
            logger.info("Settings reloaded")

    def validate(self) -> list[str]:
        """Validate current settings and return a list of issues."""
        issues = []

        if self.audio.sample_rate not in [8000, 16000, 22050, 44100, 48000]:
            issues.append(f"Invalid sample rate: {self.audio.sample_rate}")
        if self.audio.channels not in [1, 2]:
            issues.append(f"Invalid channels: {self.audio.channels}")
        if self.audio.min_segment_bytes < 1:
            issues.append(f"Invalid minimum segment size: {self.audio.min_segment_bytes}")

        for f in fields(self.timeouts):
            if getattr(self.timeouts, f.name) <= 0:
                issues.append(f"Invalid {f.name}: {getattr(self.timeouts, f.name)}")

        if self.retries.max_retries < 0:
            issues.append(f"Invalid max retries: {self.retries.max_retries}")
        if self.retries.initial_backoff < 0:
            issues.append(f"Invalid initial backoff: {self.retries.initial_backoff}")

        if not 0 < self.server.port < 65536:
            issues.append(f"Invalid port: {self.server.port}")

        if self.stt_provider not in STT_PROVIDERS:
            issues.append(f"Unknown STT provider: {self.stt_provider}")
        if self.ai_provider not in AI_PROVIDERS:
            issues.append(f"Unknown AI provider: {self.ai_provider}")
        if self.tts_provider not in TTS_PROVIDERS:
            issues.append(f"Unknown TTS provider: {self.tts_provider}")

        return issues

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to a dictionary for serialization."""
        data: Dict[str, Any] = {
            "stt_provider": self.stt_provider,
            "ai_provider": self.ai_provider,
            "tts_provider": self.tts_provider,
        }
        for section_name in SECTIONS:
            data[section_name] = asdict(getattr(self, section_name))
        return data


# Global settings instance
settings = Settings()
