from .client import SUPPORTED_PROVIDERS, build_api_handler
from .config import ApiConfiguration, ApiHandlerOptions
from .errors import ApiError, ContentFiltered, Fatal, RateLimited, TransientNetwork, ValidationFailed
from .models import ModelCatalog, calculate_api_cost
from .providers.base import ApiHandler
from .rich_printer import RichStreamPrinter
from .types import (
    ApiStream, CanonicalMessage, ContentBlock, DeploymentConfig, ModelInfo, ResolvedModel, StreamChunk
)

__all__ = [
    "build_api_handler",
    "SUPPORTED_PROVIDERS",
    "ApiConfiguration",
    "ApiHandlerOptions",
    "ApiHandler",
    "ApiError",
    "RateLimited",
    "ContentFiltered",
    "ValidationFailed",
    "TransientNetwork",
    "Fatal",
    "ModelCatalog",
    "calculate_api_cost",
    "RichStreamPrinter",
    "ApiStream",
    "CanonicalMessage",
    "ContentBlock",
    "DeploymentConfig",
    "ModelInfo",
    "ResolvedModel",
    "StreamChunk",
]
