"""Error taxonomy for the voice pipeline and its user-facing messages."""

from typing import Optional


PERMISSION_DENIED = "PERMISSION_DENIED"
DEVICE_NOT_FOUND = "DEVICE_NOT_FOUND"
ACQUISITION_FAILED = "ACQUISITION_FAILED"

ACQUISITION_MESSAGES = {
    PERMISSION_DENIED: (
        "Microphone permission denied. Please allow microphone access "
        "in your system settings and try again."
    ),
    DEVICE_NOT_FOUND: "No microphone found. Please ensure a microphone is connected.",
    ACQUISITION_FAILED: "Could not access microphone",
}

NO_AUDIO_MESSAGE = (
    "No audio data recorded. Your recording might be too short "
    "or the microphone is not working."
)
EMPTY_TRANSCRIPTION_MESSAGE = "Empty transcription. Please try speaking again."


class VoiceChatError(Exception):
    """Base class for all voice chat errors."""

    code = "VOICE_CHAT_ERROR"

    @property
    def message(self) -> str:
        return str(self)


class AcquisitionError(VoiceChatError):
    """The microphone could not be acquired."""

    code = "ACQUISITION_ERROR"

    def __init__(self, reason: str = ACQUISITION_FAILED, detail: str = ""):
        self.reason = reason
        self.detail = detail
        message = ACQUISITION_MESSAGES.get(reason, ACQUISITION_MESSAGES[ACQUISITION_FAILED])
        if reason == ACQUISITION_FAILED and detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class CaptureError(VoiceChatError):
    """A recording produced no usable audio."""

    code = "CAPTURE_ERROR"


class UpstreamError(VoiceChatError):
    """An external capability (STT, LLM, TTS) rejected or failed a request."""

    code = "UPSTREAM_ERROR"

    def __init__(self, message: str, status: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.status = status
        self.retryable = retryable


class TranscriptionError(VoiceChatError):
    """Speech-to-text failed or produced nothing usable."""

    code = "TRANSCRIPTION_ERROR"

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class EmptyTranscriptionError(TranscriptionError):
    """Speech-to-text succeeded but returned blank text."""

    code = "EMPTY_TRANSCRIPTION"

    def __init__(self, message: str = EMPTY_TRANSCRIPTION_MESSAGE):
        super().__init__(message)


class ResponseError(VoiceChatError):
    """The language model failed to produce a reply."""

    code = "RESPONSE_ERROR"

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class SynthesisError(VoiceChatError):
    """Text-to-speech failed. Never fatal to a cycle."""

    code = "SYNTHESIS_ERROR"


def is_transient_status(status: Optional[int]) -> bool:
    """HTTP statuses worth one more attempt: rate limiting and server errors."""
    return status is not None and (status == 429 or status >= 500)
