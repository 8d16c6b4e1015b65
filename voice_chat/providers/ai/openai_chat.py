"""OpenAI chat completions provider."""

import time
from typing import Iterator, Optional, Sequence
import openai
from openai import OpenAI
import structlog

from .base import AIProvider, AIResponse
from ..openai_common import create_client, to_upstream_error
from ...models import Turn


logger = structlog.get_logger()


class OpenAIChatProvider(AIProvider):
    """
    OpenAI chat provider.

    Every request carries the system prompt followed by the whole
    conversation, so the provider keeps no history of its own.
    """

    def __init__(
        self,
        system_prompt: str,
        streaming: bool = True,
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
    ):
        super().__init__(system_prompt, streaming)
        self.model = model
        self.timeout = timeout
        self.client: Optional[OpenAI] = None
        self.is_streaming = False

    def initialize(self) -> None:
        """Create the OpenAI client."""
        logger.info("Initializing OpenAI chat provider", model=self.model)
        self.client = create_client(self.timeout)

    def build_messages(self, turns: Sequence[Turn]) -> list[dict]:
        messages = [{"role": "system", "content": self.system_prompt}]
        messages.extend(turn.to_dict() for turn in turns)
        return messages

    def stream_response(self, turns: Sequence[Turn]) -> Iterator[AIResponse]:
        """Stream a reply from the chat completions endpoint."""
        if not self.client:
            raise RuntimeError("OpenAI chat not initialized")

        messages = self.build_messages(turns)
        start_time = time.time()
        self.is_streaming = True
        full_response = ""

        try:
            if self.streaming:
                stream = self.client.chat.completions.create(
                    model=self.model, messages=messages, stream=True
                )
                is_first = True
                for event in stream:
                    if not self.is_streaming:
                        logger.debug("OpenAI stream stopped early")
                        break
                    if not event.choices:
                        continue
                    text = event.choices[0].delta.content or ""
                    if not text:
                        continue
                    full_response += text
                    yield AIResponse(text=text, is_first=is_first, is_final=False)
                    is_first = False

                yield AIResponse(
                    text="", is_first=False, is_final=True, full_text=full_response
                )
            else:
                completion = self.client.chat.completions.create(
                    model=self.model, messages=messages
                )
                full_response = completion.choices[0].message.content or ""
                yield AIResponse(
                    text=full_response,
                    is_first=True,
                    is_final=True,
                    full_text=full_response,
                    metadata={"finish_reason": completion.choices[0].finish_reason},
                )

        except openai.OpenAIError as e:
            logger.error("OpenAI chat error", error=str(e))
            raise to_upstream_error(e, "Response") from e
        finally:
            self.is_streaming = False

        logger.info(
            "OpenAI response complete",
            chars=len(full_response),
            latency_ms=(time.time() - start_time) * 1000,
        )

    def stop_streaming(self) -> None:
        self.is_streaming = False

    def stop(self) -> None:
        logger.info("Stopping OpenAI chat provider")
        self.stop_streaming()
        if self.client:
            self.client.close()
        self.client = None

    def get_status(self) -> dict:
        return {
            "provider": "openai",
            "model": self.model,
            "is_streaming": self.is_streaming,
            "initialized": self.client is not None,
        }
