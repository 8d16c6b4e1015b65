"""Base interface for Text-to-Speech providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass
class AudioChunk:
    """Represents an audio chunk from TTS."""
    data: bytes
    is_first: bool = False
    is_final: bool = False
    duration_ms: Optional[int] = None
    format: str = "mp3"


class TTSProvider(ABC):
    """
    Abstract base class for TTS providers.

    This is the speaker capability used by SpeechOutput: it turns text into
    audio and plays it through the local output device.
    """

    #: Container format of synthesized audio
    audio_format: str = "mp3"

    @abstractmethod
    def initialize(self) -> None:
        """Initialize the TTS provider."""
        pass

    @abstractmethod
    def stream_audio(self, text: str) -> Iterator[AudioChunk]:
        """
        Stream audio for the given text.

        Args:
            text: The text to convert to speech

        Yields:
            AudioChunk objects, ending with an empty chunk marked ``is_final``

        Raises:
            UpstreamError: if synthesis fails
        """
        pass

    @abstractmethod
    def play_chunk(self, chunk: AudioChunk) -> None:
        """
        Play an audio chunk through speakers.

        Args:
            chunk: The audio chunk to play
        """
        pass

    @abstractmethod
    def stop_playback(self) -> None:
        """Stop current audio playback."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop the TTS provider and clean up resources."""
        pass

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the TTS provider."""
        pass

    def synthesize(self, text: str) -> bytes:
        """Render the whole utterance to encoded audio without playing it."""
        return b"".join(chunk.data for chunk in self.stream_audio(text) if chunk.data)
