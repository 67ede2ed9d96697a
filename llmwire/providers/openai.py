"""
Adapter for OpenAI-compatible APIs (OpenAI, Azure OpenAI, DeepSeek, Mistral,
Ollama, LM Studio).

Requests go through the ``openai`` SDK; streamed bodies are read raw and fed
to the shared stream decoder so every backend shares one framing path.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

import httpx
import openai
from openai import AsyncAzureOpenAI, AsyncOpenAI

from ..config import AZURE_OPENAI_DEFAULT_API_VERSION, ApiHandlerOptions
from ..errors import ApiError, ValidationFailed, classify_error, parse_retry_after
from ..http import log_failure
from ..models import (
    DEEPSEEK_CATALOG,
    LMSTUDIO_CATALOG,
    MISTRAL_CATALOG,
    OLLAMA_CATALOG,
    OPENAI_COMPATIBLE_CATALOG,
    OPENAI_NATIVE_CATALOG,
    ModelCatalog,
)
from ..stream import (
    UsageTracker,
    decode_stream,
    first_choice,
    interpret_openai_payload,
    is_content_filter_stop,
)
from ..transform import convert_to_openai_messages
from ..types import ApiStream, CanonicalMessage, ResolvedModel, StreamChunk
from .base import ApiHandler

logger = logging.getLogger(__name__)

CONTENT_FILTER_CODES = frozenset({"content_filter", "ContentFilterError", "content_policy_violation"})


@dataclass(frozen=True)
class OpenAiProfile:
    """
    Per-backend settings of the OpenAI-compatible adapter.

    Option fields name the ``ApiHandlerOptions`` attribute to read.
    """
    provider: str
    display_name: str
    catalog: ModelCatalog
    api_key_option: Optional[str]
    base_url_option: Optional[str] = None
    model_id_option: str = "api_model_id"
    default_base_url: Optional[str] = None
    base_url_suffix: str = ""
    requires_base_url: bool = False
    placeholder_api_key: Optional[str] = None


PROFILES: Dict[str, OpenAiProfile] = {
    "openai": OpenAiProfile(
        provider="openai",
        display_name="OpenAI",
        catalog=OPENAI_COMPATIBLE_CATALOG,
        api_key_option="openai_api_key",
        base_url_option="openai_base_url",
        model_id_option="openai_model_id",
        requires_base_url=True,
    ),
    "openai-native": OpenAiProfile(
        provider="openai-native",
        display_name="OpenAI",
        catalog=OPENAI_NATIVE_CATALOG,
        api_key_option="openai_native_api_key",
    ),
    "deepseek": OpenAiProfile(
        provider="deepseek",
        display_name="DeepSeek",
        catalog=DEEPSEEK_CATALOG,
        api_key_option="deepseek_api_key",
        base_url_option="deepseek_base_url",
        default_base_url="https://api.deepseek.com/v1",
    ),
    "mistral": OpenAiProfile(
        provider="mistral",
        display_name="Mistral",
        catalog=MISTRAL_CATALOG,
        api_key_option="mistral_api_key",
        default_base_url="https://api.mistral.ai/v1",
    ),
    "ollama": OpenAiProfile(
        provider="ollama",
        display_name="Ollama",
        catalog=OLLAMA_CATALOG,
        api_key_option=None,
        base_url_option="ollama_base_url",
        model_id_option="ollama_model_id",
        default_base_url="http://localhost:11434",
        base_url_suffix="/v1",
        placeholder_api_key="ollama",
    ),
    "lmstudio": OpenAiProfile(
        provider="lmstudio",
        display_name="LM Studio",
        catalog=LMSTUDIO_CATALOG,
        api_key_option=None,
        base_url_option="lmstudio_base_url",
        model_id_option="lmstudio_model_id",
        default_base_url="http://localhost:1234",
        base_url_suffix="/v1",
        placeholder_api_key="noop",
    ),
}


def map_openai_error(exc: Exception, profile: OpenAiProfile) -> ApiError:
    """
    Classify an exception raised by the openai SDK (or the raw body read).

    Args:
        exc (Exception): The raised exception.
        profile (OpenAiProfile): Backend that produced it.

    Returns:
        ApiError: The classified error.
    """
    if isinstance(exc, ApiError):
        return exc

    name = profile.display_name
    if isinstance(exc, openai.APIStatusError):
        body = exc.body if isinstance(exc.body, dict) else {}
        detail = str(body.get("message") or exc.message)
        code = str(exc.code or body.get("code") or "")
        return classify_error(
            name,
            detail,
            status=exc.status_code,
            rate_limited=isinstance(exc, openai.RateLimitError),
            content_filtered=code in CONTENT_FILTER_CODES,
            retry_after_seconds=parse_retry_after(exc.response.headers),
            provider=profile.provider,
        )
    if isinstance(exc, (openai.APIConnectionError, httpx.TransportError)):
        return classify_error(name, str(exc) or type(exc).__name__, network=True, provider=profile.provider)
    return classify_error(name, str(exc) or type(exc).__name__, provider=profile.provider)


def _is_o_series(model_id: str) -> bool:
    return model_id.startswith(("o1", "o3", "o4"))


class OpenAiHandler(ApiHandler):
    """
    Streams chat completions from an OpenAI-compatible endpoint.

    Args:
        options (ApiHandlerOptions): Adapter options; the profile decides which
            fields are read.
        profile (OpenAiProfile | str): Backend profile or its name.
        http_client (httpx.AsyncClient, optional): Passed through to the SDK.

    Raises:
        ValidationFailed: If the profile's API key or base URL is missing.
    """

    def __init__(
        self,
        options: ApiHandlerOptions,
        profile: Union[OpenAiProfile, str] = "openai",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.profile = PROFILES[profile] if isinstance(profile, str) else profile
        self.provider_name = self.profile.provider
        self.options = options
        self._owns_client = http_client is None

        api_key = getattr(options, self.profile.api_key_option) if self.profile.api_key_option else None
        if self.profile.api_key_option and not api_key:
            raise ValidationFailed(f"{self.profile.display_name} API key is required", provider=self.provider_name)

        base_url = getattr(options, self.profile.base_url_option) if self.profile.base_url_option else None
        if self.profile.requires_base_url and not base_url:
            raise ValidationFailed(f"{self.profile.display_name} base URL is required", provider=self.provider_name)
        base_url = base_url or self.profile.default_base_url
        if base_url and self.profile.base_url_suffix:
            base_url = base_url.rstrip("/") + self.profile.base_url_suffix

        client_kwargs: Dict[str, Any] = {
            "api_key": api_key or self.profile.placeholder_api_key,
            "max_retries": 0,
            "timeout": None,
            "http_client": http_client,
        }
        if self.profile.provider == "openai" and options.openai_use_azure:
            self.client = AsyncAzureOpenAI(
                azure_endpoint=base_url,
                api_version=options.azure_api_version or AZURE_OPENAI_DEFAULT_API_VERSION,
                **client_kwargs,
            )
        else:
            self.client = AsyncOpenAI(base_url=base_url, **client_kwargs)

    def get_model(self) -> ResolvedModel:
        model_id = getattr(self.options, self.profile.model_id_option)
        resolved = self.profile.catalog.resolve(model_id)
        if self.profile.provider == "openai" and self.options.openai_custom_model_info is not None:
            return ResolvedModel(resolved.id, self.options.openai_custom_model_info)
        return resolved

    def _interpret(self, payload: Dict[str, Any], usage: UsageTracker) -> Iterable[StreamChunk]:
        error = payload.get("error")
        if error:
            if not isinstance(error, dict):
                error = {"message": str(error)}
            raise classify_error(
                self.profile.display_name,
                str(error.get("message") or error.get("code") or "stream error"),
                rate_limited=str(error.get("code")) in ("429", "rate_limit_exceeded"),
                content_filtered=str(error.get("code")) in CONTENT_FILTER_CODES,
                provider=self.provider_name,
            )
        if is_content_filter_stop(payload):
            raise classify_error(
                self.profile.display_name,
                "output stopped by the content filter",
                content_filtered=True,
                filter_reason="content_filter",
                provider=self.provider_name,
            )
        return interpret_openai_payload(payload, usage)

    def _build_params(self, system_prompt: str, messages: List[CanonicalMessage]) -> Dict[str, Any]:
        model = self.get_model()
        o_series = _is_o_series(model.id)
        system_role = "developer" if o_series else "system"

        params: Dict[str, Any] = {
            "model": model.id,
            "messages": [{"role": system_role, "content": system_prompt}]
            + convert_to_openai_messages(messages, model.info),
        }
        if o_series:
            if model.info.reasoning_effort:
                params["reasoning_effort"] = model.info.reasoning_effort
        else:
            params["temperature"] = 0

        if self.options.include_max_tokens and model.info.max_tokens and model.info.max_tokens > 0:
            key = "max_completion_tokens" if o_series else "max_tokens"
            params[key] = model.info.max_tokens
        return params

    async def create_message(self, system_prompt: str, messages: List[CanonicalMessage]) -> ApiStream:
        params = self._build_params(system_prompt, messages)
        logger.debug(
            "Opening %s stream model=%s messages=%d", self.provider_name, params["model"], len(messages)
        )
        try:
            if not self.options.openai_streaming_enabled:
                async for chunk in self._create_message_non_streaming(params):
                    yield chunk
                return

            params["stream"] = True
            params["stream_options"] = {"include_usage": True}
            async with self.client.chat.completions.with_streaming_response.create(**params) as response:
                async for chunk in decode_stream(response.iter_bytes(), self._interpret):
                    yield chunk
        except ApiError as exc:
            log_failure(exc)
            raise
        except Exception as exc:
            error = map_openai_error(exc, self.profile)
            log_failure(error)
            raise error from exc

    async def _create_message_non_streaming(self, params: Dict[str, Any]) -> ApiStream:
        response = await self.client.chat.completions.create(**params)
        data = response.model_dump()
        choice = first_choice(data)

        # The complete message is interpreted as a single delta
        delta = {"delta": choice.get("message") or {}, "finish_reason": choice.get("finish_reason")}
        usage = UsageTracker()
        for chunk in self._interpret({"choices": [delta], "usage": data.get("usage")}, usage):
            yield chunk
        final = usage.chunk()
        if final is not None:
            yield final

    async def complete_prompt(self, prompt: str) -> str:
        model = self.get_model()
        params: Dict[str, Any] = {
            "model": model.id,
            "messages": [{"role": "user", "content": prompt}],
        }
        if not _is_o_series(model.id):
            params["temperature"] = 0
        try:
            response = await self.client.chat.completions.create(**params)
            if not response.choices:
                return ""
            return response.choices[0].message.content or ""
        except Exception as exc:
            error = map_openai_error(exc, self.profile)
            log_failure(error)
            raise error from exc

    async def aclose(self) -> None:
        # The SDK closes the httpx client it wraps, including an injected one
        if self._owns_client:
            await self.client.close()
