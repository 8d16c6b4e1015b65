"""ElevenLabs TTS provider implementation."""

import os
from typing import Iterator, Optional
from elevenlabs import VoiceSettings
from elevenlabs.client import ElevenLabs
import structlog

from .base import TTSProvider, AudioChunk
from .playback import PygamePlayer
from ...errors import UpstreamError, is_transient_status


logger = structlog.get_logger()


class ElevenLabsProvider(TTSProvider):
    """
    ElevenLabs TTS provider.

    The full utterance is converted in one request and re-chunked so that
    playback and the HTTP server share one code path.
    """

    CHUNK_SIZE = 4096

    def __init__(
        self,
        voice_id: str = "pNInz6obpgDQGcFmaJgB",  # Adam voice
        model_id: str = "eleven_flash_v2_5",
        output_format: str = "mp3_22050_32",
        stability: float = 0.5,
        similarity_boost: float = 0.8,
        style: float = 0.0,
        speed: float = 1.0,
        use_speaker_boost: bool = True,
        timeout: float = 15.0,
        player: Optional[PygamePlayer] = None,
    ):
        self.voice_id = voice_id
        self.timeout = timeout
        self.model_id = model_id
        self.output_format = output_format
        self.audio_format = output_format.split("_")[0]

        self.voice_settings = VoiceSettings(
            stability=stability,
            similarity_boost=similarity_boost,
            style=style,
            use_speaker_boost=use_speaker_boost,
            speed=speed,
        )

        self.client: Optional[ElevenLabs] = None
        self.player = player or PygamePlayer()
        self.should_stop = False

    def initialize(self) -> None:
        """Initialize the ElevenLabs client."""
        logger.info("Initializing ElevenLabs provider", voice_id=self.voice_id)

        api_key = os.getenv("ELEVENLABS_API_KEY")
        if not api_key:
            raise ValueError("ELEVENLABS_API_KEY environment variable not set")

        self.client = ElevenLabs(api_key=api_key, timeout=self.timeout)
        logger.info("ElevenLabs provider initialized")

    def _convert(self, text: str) -> bytes:
        try:
            audio = self.client.text_to_speech.convert(
                voice_id=self.voice_id,
                text=text,
                model_id=self.model_id,
                output_format=self.output_format,
                voice_settings=self.voice_settings,
            )
            # The SDK returns bytes or an iterator of bytes depending on version
            if isinstance(audio, (bytes, bytearray)):
                return bytes(audio)
            return b"".join(audio)
        except Exception as e:
            status = getattr(e, "status_code", None)
            status = status if isinstance(status, int) else None
            logger.error("Error generating TTS audio", error=str(e), status=status)
            raise UpstreamError(
                f"Speech failed: {e}", status=status, retryable=is_transient_status(status)
            ) from e

    def stream_audio(self, text: str) -> Iterator[AudioChunk]:
        """Convert text and yield the audio in fixed-size chunks."""
        if not self.client:
            raise RuntimeError("ElevenLabs not initialized")

        logger.debug("Generating TTS audio", text_length=len(text))
        self.should_stop = False
        audio_data = self._convert(text)

        is_first = True
        for i in range(0, len(audio_data), self.CHUNK_SIZE):
            if self.should_stop:
                logger.debug("TTS generation stopped")
                return
            yield AudioChunk(
                data=audio_data[i : i + self.CHUNK_SIZE],
                is_first=is_first,
                format=self.audio_format,
            )
            is_first = False

        yield AudioChunk(data=b"", is_first=is_first, is_final=True, format=self.audio_format)
        logger.debug("TTS generation complete", total_bytes=len(audio_data))

    def play_chunk(self, chunk: AudioChunk) -> None:
        """Play audio chunk through speakers."""
        if not chunk.data and not chunk.is_final:
            return
        self.player.feed(chunk)

    def stop_playback(self) -> None:
        """Stop current audio playback."""
        logger.debug("Stopping audio playback")
        self.should_stop = True
        self.player.stop()

    def stop(self) -> None:
        """Stop ElevenLabs provider."""
        logger.info("Stopping ElevenLabs provider")
        self.stop_playback()
        self.player.close()
        self.client = None

    def get_status(self) -> dict:
        """Get ElevenLabs provider status."""
        return {
            "provider": "elevenlabs",
            "voice_id": self.voice_id,
            "model_id": self.model_id,
            "format": self.audio_format,
            "initialized": self.client is not None,
            **self.player.get_status(),
        }
