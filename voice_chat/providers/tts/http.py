"""TTS provider that delegates synthesis to a remote voice chat server."""

from typing import Iterator, Optional
from urllib.parse import urljoin
import requests
import structlog

from .base import TTSProvider, AudioChunk
from .playback import PygamePlayer
from ..http_common import error_from_exception, error_from_response, json_field
from ...errors import UpstreamError


logger = structlog.get_logger()


class HttpTTSProvider(TTSProvider):
    """
    POSTs ``{"text": ...}`` to ``{base_url}/speak``, then downloads the
    returned ``audioUrl`` and plays it locally.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5000/api",
        timeout: float = 15.0,
        player: Optional[PygamePlayer] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.player = player or PygamePlayer()
        self.session: Optional[requests.Session] = None

    def initialize(self) -> None:
        logger.info("Initializing HTTP TTS provider", base_url=self.base_url)
        self.session = requests.Session()

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise error_from_exception(e, "Speech") from e
        if not response.ok:
            raise error_from_response(response, "Speech")
        return response

    def stream_audio(self, text: str) -> Iterator[AudioChunk]:
        if not self.session:
            raise RuntimeError("HTTP TTS provider not initialized")

        response = self._request("POST", f"{self.base_url}/speak", json={"text": text})
        audio_url = json_field(response, "audioUrl", "Speech")
        try:
            self.audio_format = response.json().get("format") or self.audio_format
        except (ValueError, AttributeError) as e:
            raise UpstreamError(f"Speech failed: {e}") from e

        # audioUrl is server-relative, e.g. /api/audio/<id>
        audio = self._request("GET", urljoin(self.base_url + "/", audio_url)).content
        logger.debug("Downloaded synthesized audio", url=audio_url, size=len(audio))

        yield AudioChunk(data=audio, is_first=True, format=self.audio_format)
        yield AudioChunk(data=b"", is_final=True, format=self.audio_format)

    def play_chunk(self, chunk: AudioChunk) -> None:
        if not chunk.data and not chunk.is_final:
            return
        self.player.feed(chunk)

    def stop_playback(self) -> None:
        self.player.stop()

    def stop(self) -> None:
        self.stop_playback()
        self.player.close()
        if self.session:
            self.session.close()
        self.session = None

    def get_status(self) -> dict:
        return {
            "provider": "http",
            "base_url": self.base_url,
            "format": self.audio_format,
            "initialized": self.session is not None,
            **self.player.get_status(),
        }
