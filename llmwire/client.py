"""
Provider selection.

The orchestrator builds one handler per configured backend and only talks to
the ``ApiHandler`` contract afterwards.
"""

import logging
from typing import Optional, Union

import httpx
import httpx2

from .config import ApiConfiguration
from .errors import ValidationFailed
from .providers.anthropic import AnthropicHandler
from .providers.azure_ai import AzureAiHandler
from .providers.base import ApiHandler
from .providers.gemini import GeminiHandler
from .providers.openai import PROFILES, OpenAiHandler

logger = logging.getLogger(__name__)

_HANDLERS = {
    "anthropic": AnthropicHandler,
    "azure-ai": AzureAiHandler,
    "gemini": GeminiHandler,
}

SUPPORTED_PROVIDERS = tuple(sorted([*_HANDLERS, *PROFILES]))


def build_api_handler(
    configuration: ApiConfiguration,
    http_client: Optional[Union[httpx.AsyncClient, httpx2.AsyncClient]] = None,
) -> ApiHandler:
    """
    Build the adapter named by ``configuration.api_provider``.

    Args:
        configuration (ApiConfiguration): Provider selection and options.
        http_client (httpx.AsyncClient, optional): Client shared by the
            adapter; useful for connection pooling and tests. The Anthropic
            SDK runs on httpx2 and takes an ``httpx2.AsyncClient`` instead.

    Returns:
        ApiHandler: A ready adapter. No request has been made yet.

    Raises:
        ValidationFailed: For an unknown provider or missing mandatory options.
    """
    provider = configuration.api_provider
    logger.debug("Building API handler provider=%s", provider)

    if provider in PROFILES:
        return OpenAiHandler(configuration, profile=provider, http_client=http_client)
    handler_cls = _HANDLERS.get(provider)
    if handler_cls is None:
        raise ValidationFailed(
            f"Unknown API provider: {provider!r}. Supported: {', '.join(SUPPORTED_PROVIDERS)}",
            provider=provider,
        )
    return handler_cls(configuration, http_client=http_client)
