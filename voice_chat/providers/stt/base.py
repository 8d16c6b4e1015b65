"""Base interface for Speech-to-Text providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class Transcript:
    """Text recognised from one audio segment."""

    text: str
    timestamp: float
    confidence: Optional[float] = None
    latency: Optional[float] = None  # milliseconds
    language: Optional[str] = None


class STTProvider(ABC):
    """Abstract base class for STT providers."""

    @abstractmethod
    def initialize(self) -> None:
        """Initialize the STT provider."""
        pass

    @abstractmethod
    def transcribe(self, audio: bytes, mime_type: str) -> Transcript:
        """
        Transcribe one complete audio clip.

        Args:
            audio: Encoded audio bytes
            mime_type: MIME type of ``audio``, e.g. ``audio/webm``

        Returns:
            The recognised transcript; its text may be blank

        Raises:
            UpstreamError: if the speech-to-text service fails
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop the STT provider and clean up resources."""
        pass

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the STT provider."""
        pass
