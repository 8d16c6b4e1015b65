"""OpenAI Whisper STT provider."""

import time
from typing import Optional
import openai
from openai import OpenAI
import structlog

from .base import STTProvider, Transcript
from ..openai_common import create_client, to_upstream_error
from ...models import AudioSegment


logger = structlog.get_logger()


class OpenAIWhisperProvider(STTProvider):
    """
    Transcribes complete clips with the OpenAI audio transcription endpoint.
    """

    def __init__(
        self,
        model: str = "whisper-1",
        timeout: float = 30.0,
        language: Optional[str] = None,
    ):
        self.model = model
        self.timeout = timeout
        self.language = language
        self.client: Optional[OpenAI] = None
        self.requests_made = 0

    def initialize(self) -> None:
        """Create the OpenAI client."""
        logger.info("Initializing OpenAI Whisper provider", model=self.model)
        self.client = create_client(self.timeout)

    def transcribe(self, audio: bytes, mime_type: str) -> Transcript:
        if not self.client:
            raise RuntimeError("OpenAI Whisper not initialized")

        filename = f"recording.{AudioSegment(audio, mime_type).file_extension}"
        options = {"language": self.language} if self.language else {}
        logger.debug("Sending audio to Whisper", size=len(audio), mime_type=mime_type)

        start_time = time.time()
        self.requests_made += 1
        try:
            result = self.client.audio.transcriptions.create(
                model=self.model,
                file=(filename, audio, mime_type),
                response_format="text",
                **options,
            )
        except openai.OpenAIError as e:
            logger.error("Whisper API error", error=str(e))
            raise to_upstream_error(e, "Transcription") from e

        # response_format="text" returns a plain string
        text = result if isinstance(result, str) else getattr(result, "text", "")
        latency_ms = (time.time() - start_time) * 1000
        logger.info("Whisper transcription complete", chars=len(text), latency_ms=latency_ms)

        return Transcript(
            text=text.strip(),
            timestamp=time.time(),
            latency=latency_ms,
            language=self.language,
        )

    def stop(self) -> None:
        """Drop the client."""
        if self.client:
            self.client.close()
        self.client = None

    def get_status(self) -> dict:
        return {
            "provider": "openai",
            "model": self.model,
            "initialized": self.client is not None,
            "requests_made": self.requests_made,
        }
