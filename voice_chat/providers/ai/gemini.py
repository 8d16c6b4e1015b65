"""Gemini AI provider implementation."""

import os
import time
from typing import Iterator, Optional, Sequence
import google.generativeai as genai
import structlog

from .base import AIProvider, AIResponse
from ...errors import UpstreamError, is_transient_status
from ...models import Role, Turn


logger = structlog.get_logger()


def to_gemini_history(turns: Sequence[Turn]) -> list[dict]:
    """Convert turns to Gemini chat history; Gemini calls the assistant 'model'."""
    return [
        {
            "role": "model" if turn.role == Role.ASSISTANT else "user",
            "parts": [turn.content],
        }
        for turn in turns
    ]


class GeminiProvider(AIProvider):
    """
    Gemini AI provider using direct API calls.

    A fresh chat session is started for each request from the turns
    passed in, so the provider itself holds no conversation state.
    """

    def __init__(
        self,
        system_prompt: str,
        streaming: bool = True,
        model_name: str = "gemini-pro",
        temperature: float = 0.7,
        max_tokens: int = 2048,
        timeout: float = 30.0,
    ):
        super().__init__(system_prompt, streaming)
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.model: Optional[genai.GenerativeModel] = None
        self.is_streaming = False

    def initialize(self) -> None:
        """Initialize Gemini API client."""
        logger.info("Initializing Gemini provider", model=self.model_name)

        api_key = os.getenv("GOOGLE_API_KEY")
        if not api_key:
            raise ValueError("GOOGLE_API_KEY environment variable not set")

        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(
            model_name=self.model_name, system_instruction=self.system_prompt
        )
        logger.info("Gemini client initialized")

    def stream_response(self, turns: Sequence[Turn]) -> Iterator[AIResponse]:
        """Stream response from Gemini."""
        if not self.model:
            raise RuntimeError("Gemini not initialized")
        if not turns:
            raise ValueError("At least one turn is required")

        chat_session = self.model.start_chat(history=to_gemini_history(turns[:-1]))
        generation_config = genai.GenerationConfig(
            temperature=self.temperature,
            max_output_tokens=self.max_tokens,
        )
        request_options = {"timeout": self.timeout}
        prompt = turns[-1].content

        self.is_streaming = True
        full_response = ""
        start_time = time.time()

        try:
            if self.streaming:
                response = chat_session.send_message(
                    prompt,
                    stream=True,
                    generation_config=generation_config,
                    request_options=request_options,
                )
                is_first = True
                for chunk in response:
                    if not self.is_streaming:
                        break

                    text = chunk.text if hasattr(chunk, "text") else ""
                    if not text:
                        continue
                    full_response += text

                    metadata = {}
                    if hasattr(chunk, "safety_ratings"):
                        metadata["safety_ratings"] = [
                            {
                                "category": rating.category.name,
                                "probability": rating.probability.name,
                            }
                            for rating in chunk.safety_ratings
                        ]

                    yield AIResponse(
                        text=text, is_first=is_first, is_final=False, metadata=metadata
                    )
                    is_first = False

                yield AIResponse(
                    text="", is_first=False, is_final=True, full_text=full_response
                )
            else:
                response = chat_session.send_message(
                    prompt,
                    generation_config=generation_config,
                    request_options=request_options,
                )
                full_response = response.text
                yield AIResponse(
                    text=full_response,
                    is_first=True,
                    is_final=True,
                    full_text=full_response,
                )

        except UpstreamError:
            raise
        except Exception as e:
            # google.api_core errors carry the HTTP status as ``code``
            status = getattr(e, "code", None)
            status = status if isinstance(status, int) else None
            logger.error("Gemini request failed", error=str(e), status=status)
            retryable = is_transient_status(status) or isinstance(
                e, (TimeoutError, ConnectionError)
            )
            raise UpstreamError(
                f"Response failed: {e}", status=status, retryable=retryable
            ) from e
        finally:
            self.is_streaming = False

        logger.info(
            "Gemini response complete",
            chars=len(full_response),
            latency_ms=(time.time() - start_time) * 1000,
        )

    def stop_streaming(self) -> None:
        """Stop current streaming response."""
        logger.debug("Stopping Gemini streaming")
        # Gemini has no cancel call; the flag is checked between chunks
        self.is_streaming = False

    def stop(self) -> None:
        """Stop Gemini provider."""
        logger.info("Stopping Gemini provider")
        self.stop_streaming()
        self.model = None

    def get_status(self) -> dict:
        """Get Gemini provider status."""
        return {
            "provider": "gemini",
            "model": self.model_name,
            "is_streaming": self.is_streaming,
            "initialized": self.model is not None,
        }
