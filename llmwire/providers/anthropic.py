"""
Anthropic Messages API adapter.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import anthropic
import httpx2
from anthropic import AsyncAnthropic

from ..config import ApiHandlerOptions
from ..errors import ApiError, ValidationFailed, classify_error, parse_retry_after
from ..http import log_failure
from ..models import ANTHROPIC_CATALOG
from ..stream import UsageTracker, as_dict, decode_stream
from ..transform import convert_to_anthropic_messages
from ..types import ApiStream, CanonicalMessage, ResolvedModel, StreamChunk
from .base import ApiHandler

logger = logging.getLogger(__name__)

PROVIDER = "anthropic"
DISPLAY_NAME = "Anthropic"
DEFAULT_MAX_TOKENS = 8192
# Smallest thinking budget the API accepts
MIN_THINKING_BUDGET = 1024
EPHEMERAL = {"type": "ephemeral"}


def _classify_error_object(error: Dict[str, Any], status: Optional[int] = None, **kwargs: Any) -> ApiError:
    error_type = str(error.get("type") or "")
    return classify_error(
        DISPLAY_NAME,
        str(error.get("message") or error_type or "unknown error"),
        status=status,
        rate_limited=error_type == "rate_limit_error",
        validation=error_type in ("invalid_request_error", "not_found_error", "request_too_large"),
        provider=PROVIDER,
        **kwargs,
    )


def map_anthropic_error(exc: Exception) -> ApiError:
    """
    Classify an exception raised by the anthropic SDK (or the raw body read).

    Args:
        exc (Exception): The raised exception.

    Returns:
        ApiError: The classified error.
    """
    if isinstance(exc, ApiError):
        return exc
    if isinstance(exc, anthropic.APIStatusError):
        body = exc.body if isinstance(exc.body, dict) else {}
        error = body.get("error") if isinstance(body.get("error"), dict) else body
        if not error.get("message"):
            error = {**error, "message": exc.message}
        return _classify_error_object(
            error,
            status=exc.status_code,
            retry_after_seconds=parse_retry_after(exc.response.headers),
        )
    if isinstance(exc, (anthropic.APIConnectionError, httpx2.TransportError)):
        return classify_error(DISPLAY_NAME, str(exc) or type(exc).__name__, network=True, provider=PROVIDER)
    return classify_error(DISPLAY_NAME, str(exc) or type(exc).__name__, provider=PROVIDER)


def interpret_anthropic_payload(payload: Dict[str, Any], usage: UsageTracker) -> Iterable[StreamChunk]:
    """
    Interpret one Messages API stream event.

    Usage arrives in two parts: prompt and cache counts on ``message_start``,
    the output count on ``message_delta``.
    """
    event_type = payload.get("type")

    if event_type == "message_start":
        raw = as_dict(as_dict(payload.get("message")).get("usage"))
        usage.update(
            input_tokens=raw.get("input_tokens") or 0,
            output_tokens=raw.get("output_tokens") or 0,
            cache_write_tokens=raw.get("cache_creation_input_tokens"),
            cache_read_tokens=raw.get("cache_read_input_tokens"),
        )
        return []

    if event_type == "message_delta":
        raw = as_dict(payload.get("usage"))
        if raw.get("output_tokens") is not None:
            usage.update(output_tokens=raw["output_tokens"])
        return []

    if event_type == "content_block_start":
        block = as_dict(payload.get("content_block"))
        if block.get("type") == "text" and block.get("text"):
            return [{"type": "text", "text": block["text"]}]
        if block.get("type") == "thinking" and block.get("thinking"):
            return [{"type": "reasoning", "text": block["thinking"]}]
        return []

    if event_type == "content_block_delta":
        delta = as_dict(payload.get("delta"))
        if delta.get("type") == "text_delta" and delta.get("text"):
            return [{"type": "text", "text": delta["text"]}]
        if delta.get("type") == "thinking_delta" and delta.get("thinking"):
            return [{"type": "reasoning", "text": delta["thinking"]}]
        return []

    if event_type == "error":
        error = payload.get("error")
        raise _classify_error_object(error if isinstance(error, dict) else {"message": str(error)})

    # ping, content_block_stop, message_stop
    return []


def _add_cache_breakpoints(messages: List[Dict[str, Any]]) -> None:
    """Mark the last block of the last two user turns as cacheable."""
    user_indexes = [i for i, message in enumerate(messages) if message["role"] == "user"]
    for index in user_indexes[-2:]:
        content = messages[index]["content"]
        if isinstance(content, str):
            content = [{"type": "text", "text": content}]
        if not content:
            continue
        content = list(content)
        content[-1] = {**content[-1], "cache_control": EPHEMERAL}
        messages[index] = {**messages[index], "content": content}


class AnthropicHandler(ApiHandler):
    """
    Streams messages from the Anthropic API.

    Args:
        options (ApiHandlerOptions): Reads ``api_key``, ``anthropic_base_url``,
            ``api_model_id`` and ``thinking_budget_tokens``.
        http_client (httpx2.AsyncClient, optional): Passed through to the
            SDK, which is built on httpx2 rather than httpx.

    Raises:
        ValidationFailed: If the API key is missing, or ``http_client`` is
            not an httpx2 client.
    """

    provider_name = PROVIDER

    def __init__(self, options: ApiHandlerOptions, http_client: Optional[httpx2.AsyncClient] = None):
        if not options.api_key:
            raise ValidationFailed("Anthropic API key is required", provider=PROVIDER)
        if http_client is not None and not isinstance(http_client, httpx2.AsyncClient):
            raise ValidationFailed(
                f"Anthropic needs an httpx2.AsyncClient, got {type(http_client).__module__}.{type(http_client).__name__}",
                provider=PROVIDER,
            )
        self.options = options
        self._owns_client = http_client is None
        self.client = AsyncAnthropic(
            api_key=options.api_key,
            base_url=options.anthropic_base_url or None,
            max_retries=0,
            timeout=None,
            http_client=http_client,
        )

    def get_model(self) -> ResolvedModel:
        return ANTHROPIC_CATALOG.resolve(self.options.api_model_id)

    def _build_params(self, system_prompt: str, messages: List[CanonicalMessage]) -> Dict[str, Any]:
        model = self.get_model()
        info = model.info
        system_text, converted = convert_to_anthropic_messages(messages, info)
        system = "\n\n".join(part for part in (system_prompt, system_text) if part)
        max_tokens = info.max_tokens if info.max_tokens and info.max_tokens > 0 else DEFAULT_MAX_TOKENS

        params: Dict[str, Any] = {
            "model": model.id,
            "max_tokens": max_tokens,
            "messages": converted,
        }
        if info.supports_prompt_cache:
            _add_cache_breakpoints(converted)
            if system:
                params["system"] = [{"type": "text", "text": system, "cache_control": EPHEMERAL}]
        elif system:
            params["system"] = system

        budget = self.options.thinking_budget_tokens
        if info.supports_extended_thinking and budget:
            # budget_tokens must stay below max_tokens
            budget = max(MIN_THINKING_BUDGET, min(budget, max_tokens - 1))
            params["thinking"] = {"type": "enabled", "budget_tokens": budget}
        else:
            params["temperature"] = 0
        return params

    async def create_message(self, system_prompt: str, messages: List[CanonicalMessage]) -> ApiStream:
        params = self._build_params(system_prompt, messages)
        logger.debug("Opening Anthropic stream model=%s messages=%d", params["model"], len(messages))
        try:
            async with self.client.messages.with_streaming_response.create(stream=True, **params) as response:
                async for chunk in decode_stream(response.iter_bytes(), interpret_anthropic_payload, sentinel=None):
                    yield chunk
        except ApiError as exc:
            log_failure(exc)
            raise
        except Exception as exc:
            error = map_anthropic_error(exc)
            log_failure(error)
            raise error from exc

    async def complete_prompt(self, prompt: str) -> str:
        model = self.get_model()
        try:
            response = await self.client.messages.create(
                model=model.id,
                max_tokens=model.info.max_tokens or DEFAULT_MAX_TOKENS,
                temperature=0,
                messages=[{"role": "user", "content": prompt}],
            )
            return "".join(block.text for block in response.content if block.type == "text")
        except Exception as exc:
            error = map_anthropic_error(exc)
            log_failure(error)
            raise error from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.close()
