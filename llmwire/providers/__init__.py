from .base import ApiHandler
from .azure_ai import AzureAiHandler
from .openai import OpenAiHandler, OpenAiProfile, PROFILES as OPENAI_PROFILES
from .anthropic import AnthropicHandler
from .gemini import GeminiHandler

__all__ = [
    "ApiHandler",
    "AzureAiHandler",
    "OpenAiHandler",
    "OpenAiProfile",
    "OPENAI_PROFILES",
    "AnthropicHandler",
    "GeminiHandler",
]
