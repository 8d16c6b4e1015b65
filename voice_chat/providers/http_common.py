"""Shared helpers for providers that call a remote voice chat server."""

import requests

from ..errors import UpstreamError, is_transient_status


def error_from_response(response: requests.Response, service: str) -> UpstreamError:
    """Build an UpstreamError from a non-2xx response carrying ``{"error": ...}``."""
    try:
        detail = response.json().get("error") or response.text
    except (ValueError, AttributeError):
        detail = response.text
    return UpstreamError(
        f"{service} failed: {response.status_code} {detail}".strip(),
        status=response.status_code,
        retryable=is_transient_status(response.status_code),
    )


def error_from_exception(error: requests.RequestException, service: str) -> UpstreamError:
    """Build an UpstreamError from a transport failure."""
    retryable = isinstance(error, (requests.Timeout, requests.ConnectionError))
    return UpstreamError(f"{service} failed: {error}", retryable=retryable)


def json_field(response: requests.Response, field: str, service: str) -> str:
    """Extract a string field from a JSON response body."""
    try:
        value = response.json().get(field)
    except (ValueError, AttributeError):
        value = None
    if not isinstance(value, str):
        raise UpstreamError(f"{service} failed: response is missing '{field}'")
    return value
