from dataclasses import dataclass, fields, replace
from typing import Any, AsyncIterator, Dict, List, Literal, Mapping, NamedTuple, Optional, TypedDict, Union

# =============================================================================
# Model metadata
# =============================================================================


@dataclass(frozen=True)
class DeploymentConfig:
    """
    Concrete backend binding for a logical model id.

    Attributes:
        name: Deployment name sent to the backend.
        api_version: API version query parameter for the deployment.
        model_mesh_name: Optional Model-Mesh routing name.
    """
    name: str
    api_version: str
    model_mesh_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], default_api_version: str) -> "DeploymentConfig":
        """Build from a settings payload, accepting camelCase or snake_case keys."""
        return cls(
            name=data["name"],
            api_version=data.get("apiVersion") or data.get("api_version") or default_api_version,
            model_mesh_name=data.get("meshName") or data.get("modelMeshName") or data.get("model_mesh_name"),
        )


# camelCase keys used by the settings layer
_MODEL_INFO_ALIASES = {
    "maxTokens": "max_tokens",
    "contextWindow": "context_window",
    "supportsImages": "supports_images",
    "supportsComputerUse": "supports_computer_use",
    "supportsPromptCache": "supports_prompt_cache",
    "supportsExtendedThinking": "supports_extended_thinking",
    "inputPrice": "input_price",
    "outputPrice": "output_price",
    "cacheWritesPrice": "cache_writes_price",
    "cacheReadsPrice": "cache_reads_price",
    "reasoningEffort": "reasoning_effort",
}


@dataclass(frozen=True)
class ModelInfo:
    """
    Static capabilities and pricing of one model.

    Prices are USD per million tokens. ``max_tokens`` of ``-1`` means the
    backend decides the output limit.
    """
    context_window: int
    max_tokens: Optional[int] = None
    supports_images: bool = False
    supports_computer_use: bool = False
    supports_prompt_cache: bool = False
    supports_extended_thinking: bool = False
    input_price: Optional[float] = None
    output_price: Optional[float] = None
    cache_writes_price: Optional[float] = None
    cache_reads_price: Optional[float] = None
    description: Optional[str] = None
    reasoning_effort: Optional[Literal["low", "medium", "high"]] = None
    default_deployment: Optional[DeploymentConfig] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ModelInfo":
        """
        Build a ModelInfo from a settings payload.

        Unknown keys are ignored so that newer settings files keep loading.

        Args:
            data (Mapping[str, Any]): camelCase or snake_case model fields.

        Returns:
            ModelInfo: The parsed descriptor.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = _MODEL_INFO_ALIASES.get(key, key)
            if name in known and name != "default_deployment":
                kwargs[name] = value
        kwargs.setdefault("context_window", 0)
        return cls(**kwargs)

    def with_overrides(self, **changes: Any) -> "ModelInfo":
        """Return a copy with the non-None ``changes`` applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


class ResolvedModel(NamedTuple):
    """Model id actually used by an adapter, with its descriptor."""
    id: str
    info: ModelInfo


# =============================================================================
# Canonical conversation
# =============================================================================

Role = Literal["user", "assistant", "system"]


class TextBlock(TypedDict):
    type: Literal["text"]
    text: str


class ImageBlock(TypedDict):
    """
    Inline image. ``data`` is raw bytes or an already base64-encoded string.
    """
    type: Literal["image"]
    media_type: str
    data: Union[bytes, str]


class ToolUseBlock(TypedDict):
    type: Literal["tool_use"]
    id: str
    name: str
    input: Dict[str, Any]


class _ToolResultRequired(TypedDict):
    type: Literal["tool_result"]
    tool_use_id: str
    content: Union[str, List[Union[TextBlock, ImageBlock]]]


class ToolResultBlock(_ToolResultRequired, total=False):
    is_error: bool


ContentBlock = Union[TextBlock, ImageBlock, ToolUseBlock, ToolResultBlock]


class CanonicalMessage(TypedDict):
    """
    Backend-agnostic conversation turn.

    ``content`` may be a plain string as shorthand for a single text block.
    Block order is significant and preserved by every converter.
    """
    role: Role
    content: Union[str, List[ContentBlock]]


# =============================================================================
# Stream chunks
# =============================================================================


class TextChunk(TypedDict):
    type: Literal["text"]
    text: str


class ReasoningChunk(TypedDict):
    type: Literal["reasoning"]
    text: str


class _UsageRequired(TypedDict):
    type: Literal["usage"]
    input_tokens: int
    output_tokens: int


class UsageChunk(_UsageRequired, total=False):
    cache_write_tokens: int
    cache_read_tokens: int


StreamChunk = Union[TextChunk, ReasoningChunk, UsageChunk]

# What ApiHandler.create_message returns
ApiStream = AsyncIterator[StreamChunk]
