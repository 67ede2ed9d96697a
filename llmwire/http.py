"""
Shared httpx helpers for adapters that talk to backends without an SDK.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from .errors import ApiError, Fatal, truncate_body

logger = logging.getLogger(__name__)


def create_http_client(
    headers: Optional[Dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Build the AsyncClient an adapter keeps for its lifetime.

    No timeout is set: callers that need a deadline wrap the call themselves.

    Args:
        headers: Default headers to include on every request.
        transport: Optional transport (tests pass an ``httpx.MockTransport``).
    """
    return httpx.AsyncClient(timeout=None, headers=headers or {}, transport=transport)


def error_body(response: httpx.Response) -> Dict[str, Any]:
    """
    Return the ``error`` object of a JSON error response, or an empty dict.

    The response body must already be read.
    """
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    if not isinstance(data, dict):
        return {}
    error = data.get("error")
    if isinstance(error, dict):
        return error
    if isinstance(error, str):
        return {"message": error}
    return {}


def error_detail(response: httpx.Response, error: Dict[str, Any]) -> str:
    """Pick the most useful message from an error response."""
    message = error.get("message")
    if message:
        return str(message)
    try:
        body = response.text
    except httpx.ResponseNotRead:
        body = ""
    return truncate_body(body) or f"HTTP {response.status_code}"


def parse_json(response: httpx.Response, display_name: str, provider: str) -> Dict[str, Any]:
    """
    Parse a successful JSON body.

    Raises:
        Fatal: If the body is not a JSON object.
    """
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise Fatal(
            f"{display_name} error: invalid response body: {truncate_body(response.text, 200)}",
            provider=provider,
            status=response.status_code,
        ) from exc
    if not isinstance(data, dict):
        raise Fatal(f"{display_name} error: unexpected response shape", provider=provider, status=response.status_code)
    return data


def log_failure(error: ApiError) -> None:
    logger.warning(
        "Provider request failed provider=%s kind=%s status=%s message=%s",
        error.provider,
        error.kind,
        error.status,
        error.message,
    )
