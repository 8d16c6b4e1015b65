"""Pipeline-facing clients wrapping STT and AI providers with policy."""

from typing import Optional, Sequence
import structlog

from ..config.settings import RetrySettings
from ..errors import (
    CaptureError,
    ResponseError,
    TranscriptionError,
    UpstreamError,
)
from ..models import AudioSegment, Role, Turn
from ..providers.ai.base import AIProvider
from ..providers.stt.base import STTProvider
from ..utils.retry import call_with_retry


logger = structlog.get_logger()


def is_retryable(error: Exception) -> bool:
    return isinstance(error, UpstreamError) and error.retryable


class _RetryingClient:
    def __init__(self, retries: Optional[RetrySettings] = None, sleep=None):
        self.retries = retries or RetrySettings()
        self._sleep = sleep

    def _call(self, func, description: str):
        kwargs = {"sleep": self._sleep} if self._sleep else {}
        return call_with_retry(
            func,
            should_retry=is_retryable,
            max_retries=self.retries.max_retries,
            initial_backoff=self.retries.initial_backoff,
            backoff_multiplier=self.retries.backoff_multiplier,
            max_backoff=self.retries.max_backoff,
            description=description,
            **kwargs,
        )


class TranscriptionClient(_RetryingClient):
    """
    Sends one complete audio segment to speech-to-text.

    Segments smaller than ``min_segment_bytes`` are rejected before any
    network call. Transient upstream failures are retried once by default;
    every other failure surfaces as TranscriptionError.
    """

    def __init__(
        self,
        provider: STTProvider,
        min_segment_bytes: int = 500,
        retries: Optional[RetrySettings] = None,
        sleep=None,
    ):
        super().__init__(retries, sleep)
        self.provider = provider
        self.min_segment_bytes = min_segment_bytes

    def transcribe(self, segment: AudioSegment) -> str:
        """
        Returns:
            The transcript text, possibly empty

        Raises:
            CaptureError: if the segment is too small to contain speech
            TranscriptionError: if speech-to-text fails
        """
        if segment.size < self.min_segment_bytes:
            raise CaptureError(
                f"Audio too short to transcribe ({segment.size} bytes, "
                f"minimum {self.min_segment_bytes})"
            )

        logger.debug("Transcribing segment", size=segment.size, mime_type=segment.mime_type)
        try:
            transcript = self._call(
                lambda: self.provider.transcribe(segment.data, segment.mime_type),
                "Transcription",
            )
        except UpstreamError as e:
            raise TranscriptionError(str(e), status=e.status) from e
        except TranscriptionError:
            raise
        except Exception as e:
            logger.exception("Unexpected transcription failure")
            raise TranscriptionError(f"Transcription failed: {e}") from e

        return transcript.text


class ResponseClient(_RetryingClient):
    """
    Asks the language model for a reply to the conversation.

    Turns are sent in chronological order and must end with the user turn
    being answered.
    """

    def __init__(
        self,
        provider: AIProvider,
        retries: Optional[RetrySettings] = None,
        sleep=None,
    ):
        super().__init__(retries, sleep)
        self.provider = provider

    def respond(self, turns: Sequence[Turn]) -> str:
        """
        Raises:
            ValueError: if the conversation does not end with a user turn
            ResponseError: if the language model fails
        """
        turns = tuple(turns)
        if not turns or turns[-1].role != Role.USER:
            raise ValueError("Conversation must end with a user turn")

        logger.debug("Requesting response", turns=len(turns))
        try:
            return self._call(lambda: self.provider.generate(turns), "Response")
        except UpstreamError as e:
            raise ResponseError(str(e), status=e.status) from e
        except ResponseError:
            raise
        except Exception as e:
            logger.exception("Unexpected response failure")
            raise ResponseError(f"Response failed: {e}") from e
