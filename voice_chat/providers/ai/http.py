"""AI provider that delegates to a remote voice chat server."""

from typing import Iterator, Optional, Sequence
import requests
import structlog

from .base import AIProvider, AIResponse
from ..http_common import error_from_exception, error_from_response, json_field
from ...models import Role, Turn


logger = structlog.get_logger()


class HttpAIProvider(AIProvider):
    """
    POSTs ``{text, conversationHistory}`` to ``{base_url}/respond``.

    The remote server applies its own system prompt; the one passed here is
    only kept for status reporting.
    """

    def __init__(
        self,
        system_prompt: str = "",
        streaming: bool = False,
        base_url: str = "http://localhost:5000/api",
        timeout: float = 30.0,
    ):
        super().__init__(system_prompt, streaming)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session: Optional[requests.Session] = None

    def initialize(self) -> None:
        logger.info("Initializing HTTP AI provider", base_url=self.base_url)
        self.session = requests.Session()

    def stream_response(self, turns: Sequence[Turn]) -> Iterator[AIResponse]:
        if not self.session:
            raise RuntimeError("HTTP AI provider not initialized")
        if not turns or turns[-1].role != Role.USER:
            raise ValueError("Conversation must end with a user turn")

        payload = {
            "text": turns[-1].content,
            "conversationHistory": [turn.to_dict() for turn in turns],
        }
        try:
            response = self.session.post(
                f"{self.base_url}/respond", json=payload, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise error_from_exception(e, "Response") from e

        if not response.ok:
            raise error_from_response(response, "Response")

        text = json_field(response, "response", "Response")
        yield AIResponse(text=text, is_first=True, is_final=True, full_text=text)

    def stop_streaming(self) -> None:
        # Single request/response; nothing to interrupt
        pass

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
