"""Base interface for AI providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

from ...models import Turn


@dataclass
class AIResponse:
    """Represents a response chunk from the AI provider."""
    text: str
    is_first: bool = False
    is_final: bool = False
    full_text: Optional[str] = None  # Complete response when is_final=True
    metadata: Optional[dict] = None


class AIProvider(ABC):
    """
    Abstract base class for AI providers.

    Providers are stateless between calls: the whole conversation is passed
    in on every request, oldest turn first, ending with the user turn that
    needs a reply.
    """

    def __init__(self, system_prompt: str, streaming: bool = True):
        self.system_prompt = system_prompt
        self.streaming = streaming

    @abstractmethod
    def initialize(self) -> None:
        """Initialize the AI provider."""
        pass

    @abstractmethod
    def stream_response(self, turns: Sequence[Turn]) -> Iterator[AIResponse]:
        """
        Stream a reply to the conversation.

        Args:
            turns: Conversation so far, oldest first

        Yields:
            AIResponse chunks, the last one with ``is_final`` and ``full_text``

        Raises:
            UpstreamError: if the language model fails
        """
        pass

    @abstractmethod
    def stop_streaming(self) -> None:
        """Stop current streaming response."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop the AI provider and clean up resources."""
        pass

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the AI provider."""
        pass

    def generate(self, turns: Sequence[Turn]) -> str:
        """Collect a complete reply."""
        parts = []
        for chunk in self.stream_response(turns):
            if chunk.is_final:
                if chunk.full_text is not None:
                    return chunk.full_text
                break
            parts.append(chunk.text)
        return "".join(parts)
