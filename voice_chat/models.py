"""Core data models shared by the recording session, pipeline and server."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class Role(str, Enum):
    """Speaker of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"


class RecordingState(str, Enum):
    """Lifecycle of the microphone recording session."""

    UNINITIALIZED = "UNINITIALIZED"
    READY = "READY"
    RECORDING = "RECORDING"


class PipelineState(str, Enum):
    """State of the orchestrator for the current cycle."""

    IDLE = "IDLE"
    PROCESSING = "PROCESSING"


@dataclass(frozen=True)
class Turn:
    """One utterance in the conversation."""

    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        """Convert to the wire format used by the HTTP routes and LLM APIs."""
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Turn":
        """Create a turn from a ``{"role": ..., "content": ...}`` mapping.

        Raises:
            ValueError: if the role is unknown or the content is not a string
        """
        if not isinstance(data, dict):
            raise ValueError(f"Turn must be an object, got {type(data).__name__}")
        content = data.get("content")
        if not isinstance(content, str):
            raise ValueError("Turn content must be a string")
        return cls(role=Role(data.get("role")), content=content)


@dataclass(frozen=True)
class AudioSegment:
    """One complete recorded audio clip, ready for transcription."""

    data: bytes
    mime_type: str = "audio/wav"

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def file_extension(self) -> str:
        """Best-guess filename extension for upload APIs that sniff names."""
        subtype = self.mime_type.split("/")[-1].split(";")[0]
        return {"x-wav": "wav", "mpeg": "mp3", "mp4": "m4a"}.get(subtype, subtype)
