"""STT provider that delegates to a remote voice chat server."""

import time
from typing import Optional
import requests
import structlog

from .base import STTProvider, Transcript
from ..http_common import error_from_exception, error_from_response, json_field


logger = structlog.get_logger()


class HttpSTTProvider(STTProvider):
    """POSTs raw audio to ``{base_url}/transcribe``."""

    def __init__(self, base_url: str = "http://localhost:5000/api", timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session: Optional[requests.Session] = None

    def initialize(self) -> None:
        logger.info("Initializing HTTP STT provider", base_url=self.base_url)
        self.session = requests.Session()

    def transcribe(self, audio: bytes, mime_type: str) -> Transcript:
        if not self.session:
            raise RuntimeError("HTTP STT provider not initialized")

        start_time = time.time()
        try:
            response = self.session.post(
                f"{self.base_url}/transcribe",
                data=audio,
                headers={"Content-Type": mime_type},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise error_from_exception(e, "Transcription") from e

        if not response.ok:
            raise error_from_response(response, "Transcription")

        text = json_field(response, "transcription", "Transcription")
        return Transcript(
            text=text,
            timestamp=time.time(),
            latency=(time.time() - start_time) * 1000,
        )

    def stop(self) -> None:
        if self.session:
            self.session.close()
        self.session = None

    def get_status(self) -> dict:
        return {
            "provider": "http",
            "base_url": self.base_url,
            "initialized": self.session is not None,
        }
