"""
Mock provider implementations for running the pipeline without API keys.
"""

import time
from typing import Iterator, Optional, Sequence
import structlog

from .stt.base import STTProvider, Transcript
from .ai.base import AIProvider, AIResponse
from .tts.base import TTSProvider, AudioChunk
from ..models import Turn


logger = structlog.get_logger()


class MockSTTProvider(STTProvider):
    """Mock STT provider that returns canned transcripts in turn."""

    DEFAULT_TRANSCRIPTS = (
        "Hello, how are you today?",
        "What's the weather like?",
        "Can you help me with a task?",
        "Tell me a joke.",
    )

    def __init__(self, transcripts: Optional[Sequence[str]] = None, delay: float = 0.0):
        self.transcripts = list(transcripts or self.DEFAULT_TRANSCRIPTS)
        self.delay = delay
        self.transcript_index = 0
        self.is_running = False

    def initialize(self) -> None:
        self.is_running = True

    def transcribe(self, audio: bytes, mime_type: str) -> Transcript:
        """Return the next canned transcript, ignoring the audio."""
        if self.delay:
            time.sleep(self.delay)

        text = self.transcripts[self.transcript_index % len(self.transcripts)]
        self.transcript_index += 1
        logger.debug("Mock transcription", size=len(audio), text=text)

        return Transcript(
            text=text,
            timestamp=time.time(),
            confidence=0.95,
            latency=self.delay * 1000,
        )

    def stop(self) -> None:
        self.is_running = False

    def get_status(self) -> dict:
        return {
            "provider": "mock",
            "is_running": self.is_running,
            "transcripts_generated": self.transcript_index,
        }


class MockAIProvider(AIProvider):
    """Mock AI provider that streams a canned reply word by word."""

    def __init__(self, system_prompt: str = "", streaming: bool = True, delay: float = 0.0):
        super().__init__(system_prompt, streaming)
        self.delay = delay
        self.is_streaming = False
        self.responses_generated = 0

    def initialize(self) -> None:
        pass

    def reply_for(self, turns: Sequence[Turn]) -> str:
        last = turns[-1].content if turns else ""
        return f"You said: {last}. That makes {len(turns)} messages so far."

    def stream_response(self, turns: Sequence[Turn]) -> Iterator[AIResponse]:
        self.is_streaming = True
        response = self.reply_for(turns)
        self.responses_generated += 1

        words = response.split()
        full_response = ""
        for i, word in enumerate(words):
            if not self.is_streaming:
                break
            full_response += ("" if i == 0 else " ") + word
            yield AIResponse(
                text=word + (" " if i < len(words) - 1 else ""),
                is_first=(i == 0),
                is_final=False,
            )
            if self.delay:
                time.sleep(self.delay)

        self.is_streaming = False
        yield AIResponse(text="", is_first=False, is_final=True, full_text=full_response)

    def stop_streaming(self) -> None:
        self.is_streaming = False

    def stop(self) -> None:
        self.stop_streaming()

    def get_status(self) -> dict:
        return {
            "provider": "mock",
            "is_streaming": self.is_streaming,
            "responses_generated": self.responses_generated,
        }


class MockTTSProvider(TTSProvider):
    """Mock TTS provider that produces placeholder audio and records playback."""

    audio_format = "mp3"

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.is_playing = False
        self.spoken: list[str] = []

    def initialize(self) -> None:
        pass

    def stream_audio(self, text: str) -> Iterator[AudioChunk]:
        """Yield one fake chunk per word, then the final marker."""
        self.spoken.append(text)
        self.is_playing = True
        for i, word in enumerate(text.split()):
            if not self.is_playing:
                return
            yield AudioChunk(
                data=b"mock_audio_data",
                is_first=(i == 0),
                duration_ms=len(word) * 100,
                format=self.audio_format,
            )
        yield AudioChunk(data=b"", is_final=True, format=self.audio_format)

    def play_chunk(self, chunk: AudioChunk) -> None:
        if self.delay and chunk.duration_ms:
            time.sleep(self.delay)
        if chunk.is_final:
            self.is_playing = False

    def stop_playback(self) -> None:
        self.is_playing = False

    def stop(self) -> None:
        self.stop_playback()

    def get_status(self) -> dict:
        return {
            "provider": "mock",
            "is_playing": self.is_playing,
            "utterances": len(self.spoken),
        }


def register_providers():
    """Register the mock providers under the name ``mock``."""
    from .registry import registry

    registry.register_stt_provider("mock", MockSTTProvider)
    registry.register_ai_provider("mock", MockAIProvider)
    registry.register_tts_provider("mock", MockTTSProvider)
