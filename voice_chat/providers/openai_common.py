"""Shared helpers for providers backed by the OpenAI API."""

import os
import openai
from openai import OpenAI

from ..errors import UpstreamError, is_transient_status


def create_client(timeout: float) -> OpenAI:
    """Create an OpenAI client; retries are handled by the pipeline clients."""
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ValueError("OPENAI_API_KEY environment variable not set")
    return OpenAI(api_key=api_key, timeout=timeout, max_retries=0)


def to_upstream_error(error: openai.OpenAIError, service: str) -> UpstreamError:
    """Translate an OpenAI SDK exception into an UpstreamError."""
    if isinstance(error, openai.APIStatusError):
        return UpstreamError(
            f"{service} failed: {error.status_code} {error.message}",
            status=error.status_code,
            retryable=is_transient_status(error.status_code),
        )
    if isinstance(error, openai.APIConnectionError):
        # Includes APITimeoutError
        return UpstreamError(f"{service} failed: {error}", retryable=True)
    return UpstreamError(f"{service} failed: {error}")
