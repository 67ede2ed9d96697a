"""
Azure AI Model Inference adapter.

Talks to the ``/chat/completions`` route of an Azure AI inference endpoint
over httpx. Logical model ids are bound to deployments through
``azure_ai_deployments``; ids without an entry are used as the deployment
name directly.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

import httpx

from ..config import ApiHandlerOptions
from ..errors import ApiError, ValidationFailed, classify_error, parse_retry_after
from ..http import create_http_client, error_body, error_detail, log_failure, parse_json
from ..models import AZURE_AI_CATALOG, AZURE_AI_DEFAULT_API_VERSION
from ..stream import UsageTracker, decode_stream, interpret_openai_payload, is_content_filter_stop
from ..transform import convert_to_openai_messages
from ..types import ApiStream, CanonicalMessage, DeploymentConfig, ResolvedModel, StreamChunk
from .base import ApiHandler

logger = logging.getLogger(__name__)

PROVIDER = "azure-ai"
DISPLAY_NAME = "Azure AI"
DEFAULT_MAX_TOKENS = 4096
MODEL_MESH_HEADER = "x-ms-model-mesh-model-name"
CONTENT_FILTER_CODES = frozenset({"ContentFilterError", "content_filter"})


def map_azure_ai_error(failure: Union[Exception, httpx.Response]) -> ApiError:
    """
    Classify an Azure AI failure.

    Args:
        failure: A non-success response whose body has been read, or the
            exception raised while sending or reading the request.

    Returns:
        ApiError: The classified error.
    """
    if isinstance(failure, ApiError):
        return failure
    if isinstance(failure, httpx.Response):
        error = error_body(failure)
        return _classify_payload(
            error,
            error_detail(failure, error),
            status=failure.status_code,
            retry_after_seconds=parse_retry_after(failure.headers),
        )
    if isinstance(failure, httpx.TransportError):
        return classify_error(DISPLAY_NAME, str(failure) or type(failure).__name__, network=True, provider=PROVIDER)
    return classify_error(DISPLAY_NAME, str(failure) or type(failure).__name__, provider=PROVIDER)


def _classify_payload(
    error: Dict[str, Any],
    detail: str,
    status: Optional[int] = None,
    retry_after_seconds: Optional[float] = None,
) -> ApiError:
    code = str(error.get("code") or "")
    return classify_error(
        DISPLAY_NAME,
        detail,
        status=status,
        rate_limited=code in ("429", "RateLimitExceeded"),
        content_filtered=code in CONTENT_FILTER_CODES,
        retry_after_seconds=retry_after_seconds,
        filter_reason=detail,
        provider=PROVIDER,
    )


def interpret_azure_ai_payload(payload: Dict[str, Any], usage: UsageTracker) -> Iterable[StreamChunk]:
    """
    OpenAI-style chunk interpreter.

    Raises on in-band error frames, and on a ``content_filter`` finish reason,
    which is how the endpoint cuts off filtered output mid-stream.
    """
    error = payload.get("error")
    if error:
        if not isinstance(error, dict):
            error = {"message": str(error)}
        raise _classify_payload(error, str(error.get("message") or error.get("code") or "stream error"))
    if is_content_filter_stop(payload):
        raise classify_error(
            DISPLAY_NAME,
            "output stopped by the content filter",
            content_filtered=True,
            filter_reason="content_filter",
            provider=PROVIDER,
        )
    return interpret_openai_payload(payload, usage)


class AzureAiHandler(ApiHandler):
    """
    Streams chat completions from an Azure AI inference endpoint.

    Args:
        options (ApiHandlerOptions): Reads ``azure_ai_endpoint``,
            ``azure_ai_key``, ``api_model_id``, ``azure_ai_model_config``
            and ``azure_ai_deployments``.
        http_client (httpx.AsyncClient, optional): Shared client; one is
            created when omitted.

    Raises:
        ValidationFailed: If the endpoint or key is missing.
    """

    provider_name = PROVIDER

    def __init__(self, options: ApiHandlerOptions, http_client: Optional[httpx.AsyncClient] = None):
        if not options.azure_ai_endpoint:
            raise ValidationFailed("Azure AI endpoint is required", provider=PROVIDER)
        if not options.azure_ai_key:
            raise ValidationFailed("Azure AI key is required", provider=PROVIDER)

        self.options = options
        self.endpoint = options.azure_ai_endpoint.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or create_http_client()

    def get_deployment_config(self) -> DeploymentConfig:
        """
        Resolve the deployment for the configured model id.

        A per-model entry in ``azure_ai_deployments`` wins; otherwise the model
        id itself is the deployment name; with no model id the catalog default
        deployment is used.
        """
        model_id = self.options.api_model_id
        if not model_id:
            return AZURE_AI_CATALOG.default_info.default_deployment

        override = self.options.azure_ai_deployments.get(model_id)
        if override is not None:
            return DeploymentConfig(
                name=override.name,
                api_version=override.api_version or AZURE_AI_DEFAULT_API_VERSION,
                model_mesh_name=override.model_mesh_name,
            )
        return DeploymentConfig(name=model_id, api_version=AZURE_AI_DEFAULT_API_VERSION)

    def get_model(self) -> ResolvedModel:
        model_id = self.options.api_model_id or AZURE_AI_CATALOG.default_model_id
        info = self.options.azure_ai_model_config or AZURE_AI_CATALOG.resolve(model_id).info
        return ResolvedModel(model_id, info.with_overrides(default_deployment=self.get_deployment_config()))

    def _request_args(self, deployment: DeploymentConfig) -> Dict[str, Any]:
        headers = {"api-key": self.options.azure_ai_key}
        if deployment.model_mesh_name:
            headers[MODEL_MESH_HEADER] = deployment.model_mesh_name
        return {
            "url": f"{self.endpoint}/chat/completions",
            "params": {"api-version": deployment.api_version},
            "headers": headers,
        }

    def _max_tokens(self) -> int:
        max_tokens = self.get_model().info.max_tokens
        return max_tokens if max_tokens and max_tokens > 0 else DEFAULT_MAX_TOKENS

    async def create_message(self, system_prompt: str, messages: List[CanonicalMessage]) -> ApiStream:
        model = self.get_model()
        deployment = model.info.default_deployment
        body = {
            "model": deployment.name,
            "messages": [{"role": "system", "content": system_prompt}]
            + convert_to_openai_messages(messages, model.info),
            "temperature": 0,
            "stream": True,
            "max_tokens": self._max_tokens(),
            "response_format": {"type": "text"},
        }

        logger.debug("Opening Azure AI stream deployment=%s messages=%d", deployment.name, len(messages))
        try:
            async with self._client.stream("POST", json=body, **self._request_args(deployment)) as response:
                if response.status_code != 200:
                    await response.aread()
                    raise map_azure_ai_error(response)
                async for chunk in decode_stream(response.aiter_bytes(), interpret_azure_ai_payload):
                    yield chunk
        except ApiError as exc:
            log_failure(exc)
            raise
        except Exception as exc:
            error = map_azure_ai_error(exc)
            log_failure(error)
            raise error from exc

    async def complete_prompt(self, prompt: str) -> str:
        deployment = self.get_deployment_config()
        body = {
            "model": deployment.name,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0,
            "response_format": {"type": "text"},
        }
        try:
            response = await self._client.post(json=body, **self._request_args(deployment))
            if response.status_code != 200:
                raise map_azure_ai_error(response)
            data = parse_json(response, DISPLAY_NAME, PROVIDER)
            choices = data.get("choices") or []
            if not choices:
                return ""
            message = choices[0].get("message") or {}
            return message.get("content") or ""
        except ApiError as exc:
            log_failure(exc)
            raise
        except Exception as exc:
            error = map_azure_ai_error(exc)
            log_failure(error)
            raise error from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
