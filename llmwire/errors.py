"""
Shared error taxonomy for provider adapters.

Every backend failure surfaces as exactly one ApiError subclass. Adapters
translate their raw failure shapes (status codes, error bodies, SDK
exceptions) into the keyword signals accepted by ``classify_error``, which
applies the same precedence for every backend.
"""

import logging
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """
    Base class for classified backend failures.

    Attributes:
        kind: Stable variant name shared by all adapters.
        message: Human-readable description (backend-specific detail).
        provider: Adapter that produced the failure, if known.
        status: HTTP status of the failed response, if one was received.
    """

    kind = "api_error"

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        status: Optional[int] = None,
    ):
        self.message = message
        self.provider = provider
        self.status = status
        super().__init__(message)

    def to_dict(self) -> dict:
        """Serialize for the orchestrator, which shows kind and message verbatim."""
        return {
            "kind": self.kind,
            "message": self.message,
            "provider": self.provider,
            "status": self.status,
        }


class RateLimited(ApiError):
    kind = "rate_limited"

    def __init__(self, message: str, *, retry_after_seconds: Optional[float] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_after_seconds = retry_after_seconds


class ContentFiltered(ApiError):
    kind = "content_filtered"

    def __init__(self, message: str, *, reason: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.reason = reason or message


class ValidationFailed(ApiError):
    kind = "validation_failed"


class TransientNetwork(ApiError):
    kind = "transient_network"


class Fatal(ApiError):
    kind = "fatal"


# Statuses that indicate the request itself was rejected as malformed
VALIDATION_STATUSES = frozenset({400, 404, 413, 422})


def classify_error(
    display_name: str,
    detail: str,
    *,
    status: Optional[int] = None,
    rate_limited: bool = False,
    content_filtered: bool = False,
    validation: bool = False,
    network: bool = False,
    retry_after_seconds: Optional[float] = None,
    filter_reason: Optional[str] = None,
    provider: Optional[str] = None,
) -> ApiError:
    """
    Map raw failure signals onto the shared taxonomy.

    Checks, in order: rate limiting (429 or an explicit provider signal),
    content filtering, request validation (explicit signal or a validation
    status), network failure with no response, and finally Fatal.

    Args:
        display_name (str): Backend name used in messages (e.g. "Azure AI").
        detail (str): Backend-specific message text.
        status (int, optional): HTTP status, if a response was received.
        rate_limited (bool): Provider-specific rate-limit signal.
        content_filtered (bool): Provider-specific content-safety signal.
        validation (bool): Provider-specific request-validation signal.
        network (bool): True when no response was received at all.
        retry_after_seconds (float, optional): Parsed retry hint.
        filter_reason (str, optional): Filter category reported by the backend.
        provider (str, optional): Adapter identifier stored on the error.

    Returns:
        ApiError: Exactly one classified error.
    """
    common = {"provider": provider, "status": status}

    if rate_limited or status == 429:
        return RateLimited(
            f"{display_name} rate limit exceeded. Please try again later.",
            retry_after_seconds=retry_after_seconds,
            **common,
        )
    if content_filtered:
        return ContentFiltered(
            f"Content was flagged by {display_name} content safety filters: {detail}",
            reason=filter_reason or detail,
            **common,
        )
    if validation or status in VALIDATION_STATUSES:
        return ValidationFailed(f"{display_name} rejected the request: {detail}", **common)
    if network and status is None:
        return TransientNetwork(f"{display_name} connection failed: {detail}", **common)
    return Fatal(f"{display_name} error: {detail}", **common)


def parse_retry_after(headers: Optional[Mapping[str, str]]) -> Optional[float]:
    """
    Read a retry hint from response headers.

    Supports ``retry-after-ms`` and numeric ``retry-after`` values. HTTP-date
    values are ignored.
    """
    if not headers:
        return None
    raw_ms = headers.get("retry-after-ms")
    if raw_ms:
        try:
            return float(raw_ms) / 1000.0
        except ValueError:
            logger.debug("Ignoring non-numeric retry-after-ms header: %s", raw_ms)
    raw = headers.get("retry-after")
    if raw:
        try:
            return float(raw)
        except ValueError:
            logger.debug("Ignoring non-numeric retry-after header: %s", raw)
    return None


def truncate_body(body: Optional[str], limit: int = 500) -> str:
    """Shorten an error body for logs and messages."""
    if not body:
        return ""
    if len(body) > limit:
        return f"{body[:limit]}...(truncated)"
    return body
