"""
Adapter configuration surface.

The settings layer that persists these values lives outside this package; it
hands over either a mapping (``ApiConfiguration.from_dict``) or relies on
environment variables and a ``.env`` file (``ApiConfiguration.from_env``).
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Union

import dotenv

from .models import AZURE_AI_DEFAULT_API_VERSION
from .types import DeploymentConfig, ModelInfo

logger = logging.getLogger(__name__)

AZURE_OPENAI_DEFAULT_API_VERSION = "2024-08-01-preview"


@dataclass
class ApiHandlerOptions:
    """
    Options consumed by provider adapters.

    Each adapter reads only the fields for its backend; the rest stay None.
    """
    api_model_id: Optional[str] = None

    # Anthropic
    api_key: Optional[str] = None
    anthropic_base_url: Optional[str] = None
    thinking_budget_tokens: Optional[int] = None

    # OpenAI-compatible
    openai_base_url: Optional[str] = None
    openai_api_key: Optional[str] = None
    openai_model_id: Optional[str] = None
    openai_custom_model_info: Optional[ModelInfo] = None
    openai_use_azure: bool = False
    azure_api_version: Optional[str] = None
    openai_streaming_enabled: bool = True
    include_max_tokens: bool = False
    openai_native_api_key: Optional[str] = None
    deepseek_base_url: Optional[str] = None
    deepseek_api_key: Optional[str] = None
    mistral_api_key: Optional[str] = None
    ollama_base_url: Optional[str] = None
    ollama_model_id: Optional[str] = None
    lmstudio_base_url: Optional[str] = None
    lmstudio_model_id: Optional[str] = None

    # Gemini
    gemini_api_key: Optional[str] = None
    gemini_base_url: Optional[str] = None

    # Azure AI Model Inference
    azure_ai_endpoint: Optional[str] = None
    azure_ai_key: Optional[str] = None
    azure_ai_model_config: Optional[ModelInfo] = None
    azure_ai_deployments: Dict[str, DeploymentConfig] = field(default_factory=dict)


@dataclass
class ApiConfiguration(ApiHandlerOptions):
    """Handler options plus the backend selection."""
    api_provider: str = "anthropic"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ApiConfiguration":
        """
        Build a configuration from a settings payload.

        Keys may be snake_case or the camelCase used by the settings layer
        (``azureAiEndpoint``, ``openAiBaseUrl``...). Unknown keys are skipped.

        Args:
            data (Mapping[str, Any]): Raw settings values.

        Returns:
            ApiConfiguration: Parsed configuration.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = _snake_case(key)
            if name not in known:
                logger.debug("Ignoring unknown configuration key: %s", key)
                continue
            if value is None:
                continue
            kwargs[name] = value

        for name in ("openai_custom_model_info", "azure_ai_model_config"):
            if isinstance(kwargs.get(name), Mapping):
                kwargs[name] = ModelInfo.from_dict(kwargs[name])

        deployments = kwargs.get("azure_ai_deployments")
        if deployments:
            kwargs["azure_ai_deployments"] = _parse_deployments(deployments)

        return cls(**kwargs)

    @classmethod
    def from_env(cls, env_file: Optional[str] = ".env") -> "ApiConfiguration":
        """
        Build a configuration from environment variables.

        Values from ``env_file`` are used when the process environment does
        not define the same variable.
        """
        values: Dict[str, Optional[str]] = {}
        if env_file and os.path.exists(env_file):
            values.update(dotenv.dotenv_values(env_file))
        values.update(os.environ)

        def get(*names: str) -> Optional[str]:
            for name in names:
                if values.get(name):
                    return values[name]
            return None

        data: Dict[str, Any] = {
            "api_provider": get("LLMWIRE_PROVIDER") or "anthropic",
            "api_model_id": get("LLMWIRE_MODEL_ID"),
            "api_key": get("ANTHROPIC_API_KEY"),
            "anthropic_base_url": get("ANTHROPIC_BASE_URL"),
            "openai_api_key": get("OPENAI_API_KEY"),
            "openai_base_url": get("OPENAI_BASE_URL"),
            "openai_model_id": get("OPENAI_MODEL_ID"),
            "openai_native_api_key": get("OPENAI_NATIVE_API_KEY", "OPENAI_API_KEY"),
            "deepseek_api_key": get("DEEPSEEK_API_KEY"),
            "mistral_api_key": get("MISTRAL_API_KEY"),
            "gemini_api_key": get("GEMINI_API_KEY", "GOOGLE_API_KEY"),
            "azure_ai_endpoint": get("AZURE_AI_ENDPOINT"),
            "azure_ai_key": get("AZURE_AI_KEY"),
            "ollama_base_url": get("OLLAMA_BASE_URL"),
            "lmstudio_base_url": get("LMSTUDIO_BASE_URL"),
        }
        budget = get("LLMWIRE_THINKING_BUDGET")
        if budget:
            data["thinking_budget_tokens"] = int(budget)
        deployments = get("AZURE_AI_DEPLOYMENTS")
        if deployments:
            data["azure_ai_deployments"] = json.loads(deployments)
        return cls.from_dict(data)


def _snake_case(key: str) -> str:
    name = re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()
    # Product names written as two words in camelCase
    return (
        name.replace("open_ai", "openai")
        .replace("lm_studio", "lmstudio")
        .replace("deep_seek", "deepseek")
    )


def _parse_deployments(
    raw: Mapping[str, Union[DeploymentConfig, Mapping[str, Any]]],
) -> Dict[str, DeploymentConfig]:
    parsed: Dict[str, DeploymentConfig] = {}
    for model_id, entry in raw.items():
        if isinstance(entry, DeploymentConfig):
            parsed[model_id] = entry
        else:
            parsed[model_id] = DeploymentConfig.from_dict(entry, AZURE_AI_DEFAULT_API_VERSION)
    return parsed
