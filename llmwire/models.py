"""
Static model catalogs.

Each provider exposes a ModelCatalog built once at import time. Lookups never
touch the network and fall back to a fixed default descriptor, so the same
model id always resolves to the same ModelInfo.
"""

from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional

from .types import DeploymentConfig, ModelInfo, ResolvedModel, UsageChunk


class ModelCatalog:
    """
    Read-only table of model descriptors for one provider.

    Args:
        models: Known model ids and their descriptors.
        default_model_id: Id returned when the requested id is missing or unknown.
        default_info: Descriptor used for the fallback. Defaults to
            ``models[default_model_id]``.
        open_ended: When True (user-declared deployments, self-hosted
            endpoints), an unknown id is kept as-is and paired with
            ``default_info`` instead of being replaced by ``default_model_id``.
    """

    def __init__(
        self,
        models: Mapping[str, ModelInfo],
        default_model_id: str,
        default_info: Optional[ModelInfo] = None,
        open_ended: bool = False,
    ):
        self._models = MappingProxyType(dict(models))
        self.default_model_id = default_model_id
        self.default_info = default_info if default_info is not None else self._models[default_model_id]
        self.open_ended = open_ended

    def resolve(self, model_id: Optional[str]) -> ResolvedModel:
        """
        Look up ``model_id``, degrading to the provider default.

        Args:
            model_id (str, optional): Requested model id.

        Returns:
            ResolvedModel: The id that will be used and its descriptor.
        """
        if model_id and model_id in self._models:
            return ResolvedModel(model_id, self._models[model_id])
        if model_id and self.open_ended:
            return ResolvedModel(model_id, self.default_info)
        return ResolvedModel(self.default_model_id, self.default_info)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __iter__(self) -> Iterator[str]:
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)


# =============================================================================
# Anthropic
# =============================================================================

anthropic_default_model_id = "claude-3-7-sonnet-20250219"

anthropic_models: Dict[str, ModelInfo] = {
    "claude-3-7-sonnet-20250219": ModelInfo(
        context_window=200_000,
        max_tokens=8192,
        supports_images=True,
        supports_computer_use=True,
        supports_prompt_cache=True,
        supports_extended_thinking=True,
        input_price=3.0,
        output_price=15.0,
        cache_writes_price=3.75,
        cache_reads_price=0.3,
    ),
    "claude-3-5-sonnet-20241022": ModelInfo(
        context_window=200_000,
        max_tokens=8192,
        supports_images=True,
        supports_computer_use=True,
        supports_prompt_cache=True,
        input_price=3.0,
        output_price=15.0,
        cache_writes_price=3.75,
        cache_reads_price=0.3,
    ),
    "claude-3-5-haiku-20241022": ModelInfo(
        context_window=200_000,
        max_tokens=8192,
        supports_images=False,
        supports_prompt_cache=True,
        input_price=0.8,
        output_price=4.0,
        cache_writes_price=1.0,
        cache_reads_price=0.08,
    ),
    "claude-3-opus-20240229": ModelInfo(
        context_window=200_000,
        max_tokens=4096,
        supports_images=True,
        supports_prompt_cache=True,
        input_price=15.0,
        output_price=75.0,
        cache_writes_price=18.75,
        cache_reads_price=1.5,
    ),
    "claude-3-haiku-20240307": ModelInfo(
        context_window=200_000,
        max_tokens=4096,
        supports_images=True,
        supports_prompt_cache=True,
        input_price=0.25,
        output_price=1.25,
        cache_writes_price=0.3,
        cache_reads_price=0.03,
    ),
}

# =============================================================================
# OpenAI (native API)
# =============================================================================

openai_native_default_model_id = "gpt-4o"

openai_native_models: Dict[str, ModelInfo] = {
    "gpt-4o": ModelInfo(
        context_window=128_000,
        max_tokens=16_384,
        supports_images=True,
        supports_computer_use=True,
        input_price=2.5,
        output_price=10.0,
        cache_reads_price=1.25,
    ),
    "gpt-4o-mini": ModelInfo(
        context_window=128_000,
        max_tokens=16_384,
        supports_images=True,
        input_price=0.15,
        output_price=0.6,
        cache_reads_price=0.075,
    ),
    "o1": ModelInfo(
        context_window=200_000,
        max_tokens=100_000,
        supports_images=True,
        input_price=15.0,
        output_price=60.0,
        cache_reads_price=7.5,
    ),
    "o3-mini": ModelInfo(
        context_window=200_000,
        max_tokens=100_000,
        supports_images=False,
        input_price=1.1,
        output_price=4.4,
        cache_reads_price=0.55,
        reasoning_effort="medium",
    ),
}

# =============================================================================
# DeepSeek
# =============================================================================

deepseek_default_model_id = "deepseek-chat"

# input_price is the cache-miss price; cache hits bill at cache_reads_price
deepseek_models: Dict[str, ModelInfo] = {
    "deepseek-chat": ModelInfo(
        context_window=64_000,
        max_tokens=8192,
        supports_images=False,
        supports_prompt_cache=True,
        input_price=0.27,
        output_price=1.1,
        cache_writes_price=0.27,
        cache_reads_price=0.07,
    ),
    "deepseek-reasoner": ModelInfo(
        context_window=64_000,
        max_tokens=8192,
        supports_images=False,
        supports_prompt_cache=True,
        input_price=0.55,
        output_price=2.19,
        cache_writes_price=0.55,
        cache_reads_price=0.14,
    ),
}

# =============================================================================
# Gemini
# =============================================================================

gemini_default_model_id = "gemini-2.0-flash-001"

gemini_models: Dict[str, ModelInfo] = {
    "gemini-2.0-flash-001": ModelInfo(
        context_window=1_048_576,
        max_tokens=8192,
        supports_images=True,
        input_price=0.1,
        output_price=0.4,
    ),
    "gemini-1.5-pro-002": ModelInfo(
        context_window=2_097_152,
        max_tokens=8192,
        supports_images=True,
        input_price=1.25,
        output_price=5.0,
    ),
    "gemini-1.5-flash-002": ModelInfo(
        context_window=1_048_576,
        max_tokens=8192,
        supports_images=True,
        input_price=0.075,
        output_price=0.3,
    ),
}

# =============================================================================
# Mistral
# =============================================================================

mistral_default_model_id = "codestral-latest"

mistral_models: Dict[str, ModelInfo] = {
    "codestral-latest": ModelInfo(
        context_window=256_000,
        max_tokens=256_000,
        supports_images=False,
        input_price=0.3,
        output_price=0.9,
    ),
    "mistral-large-latest": ModelInfo(
        context_window=131_000,
        max_tokens=131_000,
        supports_images=False,
        input_price=2.0,
        output_price=6.0,
    ),
}

# =============================================================================
# User-declared endpoints
# =============================================================================

# OpenAI-compatible servers (custom base URL, Ollama, LM Studio)
openai_model_info_sane_defaults = ModelInfo(
    context_window=4096,
    max_tokens=-1,
    supports_images=False,
    supports_computer_use=True,
    supports_prompt_cache=False,
    input_price=0.0,
    output_price=0.0,
)

azure_ai_default_model_id = "gpt-35-turbo"
AZURE_AI_DEFAULT_API_VERSION = "2024-02-15-preview"

azure_ai_model_info_sane_defaults = ModelInfo(
    context_window=128_000,
    max_tokens=-1,
    supports_images=True,
    supports_computer_use=True,
    supports_prompt_cache=False,
    input_price=0.0,
    output_price=0.0,
    description="Azure AI Model Inference allows you to deploy and use any model through Azure's inference service.",
    default_deployment=DeploymentConfig(name=azure_ai_default_model_id, api_version=AZURE_AI_DEFAULT_API_VERSION),
)

# =============================================================================
# Catalogs
# =============================================================================

ANTHROPIC_CATALOG = ModelCatalog(anthropic_models, anthropic_default_model_id)
OPENAI_NATIVE_CATALOG = ModelCatalog(openai_native_models, openai_native_default_model_id)
DEEPSEEK_CATALOG = ModelCatalog(deepseek_models, deepseek_default_model_id)
GEMINI_CATALOG = ModelCatalog(gemini_models, gemini_default_model_id)
MISTRAL_CATALOG = ModelCatalog(mistral_models, mistral_default_model_id)
AZURE_AI_CATALOG = ModelCatalog(
    {}, azure_ai_default_model_id, azure_ai_model_info_sane_defaults, open_ended=True
)
OPENAI_COMPATIBLE_CATALOG = ModelCatalog(
    {}, "gpt-4o", openai_model_info_sane_defaults, open_ended=True
)
OLLAMA_CATALOG = ModelCatalog({}, "llama3.1", openai_model_info_sane_defaults, open_ended=True)
LMSTUDIO_CATALOG = ModelCatalog({}, "local-model", openai_model_info_sane_defaults, open_ended=True)


def calculate_api_cost(info: ModelInfo, usage: UsageChunk, input_includes_cache: bool = False) -> float:
    """
    Compute the USD cost of one call from catalog pricing.

    Args:
        info (ModelInfo): Descriptor of the model that served the call.
        usage (UsageChunk): Final usage report of the call.
        input_includes_cache (bool): True for OpenAI-style reports, where
            ``input_tokens`` already counts the cached prompt tokens.

    Returns:
        float: Total cost; unpriced components count as zero.
    """
    per_token = 1_000_000.0
    cache_writes = usage.get("cache_write_tokens", 0)
    cache_reads = usage.get("cache_read_tokens", 0)
    input_tokens = usage.get("input_tokens", 0)
    if input_includes_cache:
        input_tokens = max(0, input_tokens - cache_writes - cache_reads)

    cost = (info.input_price or 0.0) / per_token * input_tokens
    cost += (info.output_price or 0.0) / per_token * usage.get("output_tokens", 0)
    cost += (info.cache_writes_price or 0.0) / per_token * cache_writes
    cost += (info.cache_reads_price or 0.0) / per_token * cache_reads
    return cost
