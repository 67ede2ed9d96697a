import httpx
import pytest

from llmwire import ApiConfiguration, ValidationFailed, build_api_handler
from llmwire.providers.anthropic import AnthropicHandler
from llmwire.providers.azure_ai import AzureAiHandler
from llmwire.providers.gemini import GeminiHandler
from llmwire.providers.openai import OpenAiHandler


class TestBuildApiHandler:
    @pytest.mark.parametrize(
        "settings, expected",
        [
            ({"apiProvider": "anthropic", "apiKey": "k"}, AnthropicHandler),
            ({"apiProvider": "azure-ai", "azureAiEndpoint": "https://x", "azureAiKey": "k"}, AzureAiHandler),
            ({"apiProvider": "gemini", "geminiApiKey": "k"}, GeminiHandler),
            ({"apiProvider": "deepseek", "deepSeekApiKey": "k"}, OpenAiHandler),
            ({"apiProvider": "ollama"}, OpenAiHandler),
        ],
    )
    def test_selects_adapter(self, settings, expected):
        handler = build_api_handler(ApiConfiguration.from_dict(settings))
        assert isinstance(handler, expected)
        assert handler.provider_name == settings["apiProvider"]

    def test_unknown_provider(self):
        with pytest.raises(ValidationFailed, match="Unknown API provider: 'bedrock'"):
            build_api_handler(ApiConfiguration(api_provider="bedrock"))

    def test_missing_credentials_surface_from_adapter(self):
        with pytest.raises(ValidationFailed, match="Azure AI endpoint is required"):
            build_api_handler(ApiConfiguration(api_provider="azure-ai", azure_ai_key="k"))

    @pytest.mark.asyncio
    async def test_shared_client_is_not_closed(self, mock_client):
        client = mock_client(lambda request: httpx.Response(200))
        handler = build_api_handler(
            ApiConfiguration(api_provider="gemini", gemini_api_key="k"), http_client=client
        )
        await handler.aclose()
        assert not client.is_closed
        await client.aclose()

    def test_anthropic_takes_httpx2_client(self, mock_client, httpx2_mock_client):
        configuration = ApiConfiguration(api_provider="anthropic", api_key="k")
        handler = build_api_handler(configuration, http_client=httpx2_mock_client(lambda request: None))
        assert isinstance(handler, AnthropicHandler)
        with pytest.raises(ValidationFailed, match="httpx2.AsyncClient"):
            build_api_handler(configuration, http_client=mock_client(lambda request: httpx.Response(200)))
