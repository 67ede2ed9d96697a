"""
Gemini adapter.

Streaming uses ``streamGenerateContent`` with ``alt=sse`` over httpx so the
body is a regular event stream handled by the shared decoder. One-shot
completions and error bodies go through the ``google-genai`` SDK, which
shares the same httpx client.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from ..config import ApiHandlerOptions
from ..errors import ApiError, ValidationFailed, classify_error, parse_retry_after, truncate_body
from ..http import create_http_client, log_failure
from ..models import GEMINI_CATALOG
from ..stream import UsageTracker, as_dict, decode_stream
from ..transform import convert_to_gemini_contents
from ..types import ApiStream, CanonicalMessage, ResolvedModel, StreamChunk
from .base import ApiHandler

logger = logging.getLogger(__name__)

PROVIDER = "gemini"
DISPLAY_NAME = "Gemini"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
API_VERSION = "v1beta"

SAFETY_FINISH_REASONS = frozenset({"SAFETY", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII", "IMAGE_SAFETY"})
VALIDATION_CODES = frozenset({"INVALID_ARGUMENT", "FAILED_PRECONDITION", "NOT_FOUND", "OUT_OF_RANGE"})


def _classify_status(
    code: Optional[str],
    detail: str,
    status: Optional[int] = None,
    retry_after_seconds: Optional[float] = None,
) -> ApiError:
    code = str(code or "")
    return classify_error(
        DISPLAY_NAME,
        detail,
        status=status,
        rate_limited=code == "RESOURCE_EXHAUSTED",
        validation=code in VALIDATION_CODES,
        retry_after_seconds=retry_after_seconds,
        provider=PROVIDER,
    )


def map_gemini_error(exc: Exception) -> ApiError:
    """
    Classify a Gemini failure.

    Args:
        exc (Exception): A ``google.genai`` API error (raised by the SDK, or
            built from a failed streaming response), or the exception raised
            while sending or reading the request.

    Returns:
        ApiError: The classified error.
    """
    if isinstance(exc, ApiError):
        return exc
    if isinstance(exc, genai_errors.APIError):
        retry_after = None
        if isinstance(exc.response, httpx.Response):
            retry_after = parse_retry_after(exc.response.headers)
        detail = exc.message or truncate_body(str(exc.details or "")) or f"HTTP {exc.code}"
        return _classify_status(exc.status, str(detail), status=exc.code, retry_after_seconds=retry_after)
    if isinstance(exc, httpx.TransportError):
        return classify_error(DISPLAY_NAME, str(exc) or type(exc).__name__, network=True, provider=PROVIDER)
    return classify_error(DISPLAY_NAME, str(exc) or type(exc).__name__, provider=PROVIDER)


def _content_filtered(reason: str, detail: str) -> ApiError:
    return classify_error(DISPLAY_NAME, detail, content_filtered=True, filter_reason=reason, provider=PROVIDER)


def interpret_gemini_payload(payload: Dict[str, Any], usage: UsageTracker) -> Iterable[StreamChunk]:
    """
    Interpret one ``GenerateContentResponse`` frame.

    ``usageMetadata`` is cumulative and repeats on every frame. Parts flagged
    ``thought`` are reasoning output.
    """
    error = payload.get("error")
    if error:
        if not isinstance(error, dict):
            error = {"message": str(error)}
        raise _classify_status(error.get("status"), str(error.get("message") or error.get("status") or "stream error"))

    block_reason = as_dict(payload.get("promptFeedback")).get("blockReason")
    if block_reason:
        raise _content_filtered(str(block_reason), f"prompt blocked ({block_reason})")

    chunks: List[StreamChunk] = []
    candidates = payload.get("candidates")
    candidate = as_dict(candidates[0]) if isinstance(candidates, list) and candidates else {}
    parts = as_dict(candidate.get("content")).get("parts")
    for part in parts if isinstance(parts, list) else []:
        part = as_dict(part)
        text = part.get("text")
        if not isinstance(text, str) or not text:
            continue
        chunks.append({"type": "reasoning" if part.get("thought") else "text", "text": text})

    finish_reason = candidate.get("finishReason")
    if finish_reason in SAFETY_FINISH_REASONS:
        raise _content_filtered(finish_reason, f"response stopped ({finish_reason})")

    metadata = payload.get("usageMetadata")
    if isinstance(metadata, dict):
        usage.update(
            input_tokens=metadata.get("promptTokenCount") or 0,
            output_tokens=(metadata.get("candidatesTokenCount") or 0) + (metadata.get("thoughtsTokenCount") or 0),
            cache_read_tokens=metadata.get("cachedContentTokenCount"),
        )
    return chunks


class GeminiHandler(ApiHandler):
    """
    Streams generated content from the Gemini API.

    Args:
        options (ApiHandlerOptions): Reads ``gemini_api_key``,
            ``gemini_base_url`` and ``api_model_id``.
        http_client (httpx.AsyncClient, optional): Shared client; one is
            created when omitted. The genai SDK sends through it as well.

    Raises:
        ValidationFailed: If the API key is missing.
    """

    provider_name = PROVIDER

    def __init__(self, options: ApiHandlerOptions, http_client: Optional[httpx.AsyncClient] = None):
        if not options.gemini_api_key:
            raise ValidationFailed("Gemini API key is required", provider=PROVIDER)
        self.options = options
        self.base_url = (options.gemini_base_url or DEFAULT_BASE_URL).rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or create_http_client()
        self.genai_client = genai.Client(
            api_key=options.gemini_api_key,
            http_options=genai_types.HttpOptions(
                base_url=self.base_url,
                api_version=API_VERSION,
                httpx_async_client=self._client,
            ),
        )

    def get_model(self) -> ResolvedModel:
        return GEMINI_CATALOG.resolve(self.options.api_model_id)

    def _url(self, model_id: str) -> str:
        return f"{self.base_url}/{API_VERSION}/models/{model_id}:streamGenerateContent"

    def _headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self.options.gemini_api_key}

    async def create_message(self, system_prompt: str, messages: List[CanonicalMessage]) -> ApiStream:
        model = self.get_model()
        system_instruction, contents = convert_to_gemini_contents(messages, model.info)
        parts = [{"text": system_prompt}] if system_prompt else []
        if system_instruction:
            parts.extend(system_instruction["parts"])

        body: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {"temperature": 0},
        }
        if parts:
            body["systemInstruction"] = {"parts": parts}
        if model.info.max_tokens and model.info.max_tokens > 0:
            body["generationConfig"]["maxOutputTokens"] = model.info.max_tokens

        logger.debug("Opening Gemini stream model=%s messages=%d", model.id, len(messages))
        try:
            async with self._client.stream(
                "POST",
                self._url(model.id),
                params={"alt": "sse"},
                headers=self._headers(),
                json=body,
            ) as response:
                await genai_errors.APIError.raise_for_async_response(response)
                async for chunk in decode_stream(response.aiter_bytes(), interpret_gemini_payload, sentinel=None):
                    yield chunk
        except ApiError as exc:
            log_failure(exc)
            raise
        except Exception as exc:
            error = map_gemini_error(exc)
            log_failure(error)
            raise error from exc

    async def complete_prompt(self, prompt: str) -> str:
        model = self.get_model()
        try:
            response = await self.genai_client.aio.models.generate_content(
                model=model.id,
                contents=prompt,
                config=genai_types.GenerateContentConfig(temperature=0),
            )
            return response.text or ""
        except Exception as exc:
            error = map_gemini_error(exc)
            log_failure(error)
            raise error from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
