from dataclasses import FrozenInstanceError

import pytest

from llmwire.models import (
    ANTHROPIC_CATALOG,
    AZURE_AI_CATALOG,
    AZURE_AI_DEFAULT_API_VERSION,
    DEEPSEEK_CATALOG,
    GEMINI_CATALOG,
    OLLAMA_CATALOG,
    ModelCatalog,
    anthropic_default_model_id,
    calculate_api_cost,
)
from llmwire.types import DeploymentConfig, ModelInfo


class TestModelCatalog:
    def test_known_model(self):
        resolved = ANTHROPIC_CATALOG.resolve("claude-3-5-haiku-20241022")
        assert resolved.id == "claude-3-5-haiku-20241022"
        assert resolved.info.supports_images is False

    @pytest.mark.parametrize("model_id", [None, "", "not-a-model"])
    def test_unknown_or_missing_falls_back_to_default(self, model_id):
        resolved = ANTHROPIC_CATALOG.resolve(model_id)
        assert resolved.id == anthropic_default_model_id
        assert resolved.info is ANTHROPIC_CATALOG.default_info

    def test_resolution_is_deterministic(self):
        assert GEMINI_CATALOG.resolve("x") == GEMINI_CATALOG.resolve("x")

    def test_open_ended_catalog_keeps_requested_id(self):
        resolved = OLLAMA_CATALOG.resolve("qwen2.5-coder")
        assert resolved.id == "qwen2.5-coder"
        assert resolved.info is OLLAMA_CATALOG.default_info

    def test_azure_default_deployment(self):
        resolved = AZURE_AI_CATALOG.resolve(None)
        assert resolved.id == "gpt-35-turbo"
        assert resolved.info.default_deployment == DeploymentConfig("gpt-35-turbo", AZURE_AI_DEFAULT_API_VERSION)

    def test_catalog_is_read_only(self):
        catalog = ModelCatalog({"m": ModelInfo(context_window=1)}, "m")
        with pytest.raises(TypeError):
            catalog._models["other"] = ModelInfo(context_window=2)
        with pytest.raises(FrozenInstanceError):
            catalog.default_info.context_window = 5

    def test_membership(self):
        assert "deepseek-chat" in DEEPSEEK_CATALOG
        assert "gpt-4o" not in DEEPSEEK_CATALOG
        assert len(DEEPSEEK_CATALOG) == len(list(DEEPSEEK_CATALOG))


class TestModelInfo:
    def test_from_camel_case(self):
        info = ModelInfo.from_dict({
            "maxTokens": 1000,
            "contextWindow": 8000,
            "supportsImages": True,
            "inputPrice": 1.5,
            "somethingNew": "ignored",
        })
        assert info == ModelInfo(context_window=8000, max_tokens=1000, supports_images=True, input_price=1.5)

    def test_with_overrides_skips_none(self):
        base = ModelInfo(context_window=10, max_tokens=5)
        assert base.with_overrides(max_tokens=None, supports_images=True) == ModelInfo(
            context_window=10, max_tokens=5, supports_images=True
        )

    def test_deployment_from_dict(self):
        deployment = DeploymentConfig.from_dict({"name": "prod", "modelMeshName": "mesh"}, "2024-01-01")
        assert deployment == DeploymentConfig("prod", "2024-01-01", "mesh")

    def test_deployment_from_dict_mesh_name_key(self):
        deployment = DeploymentConfig.from_dict({"name": "prod", "apiVersion": "v2", "meshName": "llama"}, "v1")
        assert deployment == DeploymentConfig("prod", "v2", "llama")


class TestCalculateApiCost:
    def test_anthropic_style_usage(self):
        info = ANTHROPIC_CATALOG.resolve("claude-3-7-sonnet-20250219").info
        usage = {
            "type": "usage",
            "input_tokens": 1_000_000,
            "output_tokens": 1_000_000,
            "cache_write_tokens": 1_000_000,
            "cache_read_tokens": 1_000_000,
        }
        assert calculate_api_cost(info, usage) == pytest.approx(3.0 + 15.0 + 3.75 + 0.3)

    def test_input_including_cache(self):
        info = ModelInfo(context_window=1, input_price=1.0, output_price=0.0, cache_reads_price=0.5)
        usage = {"type": "usage", "input_tokens": 1_000_000, "output_tokens": 0, "cache_read_tokens": 400_000}
        assert calculate_api_cost(info, usage, input_includes_cache=True) == pytest.approx(0.6 + 0.2)

    def test_unpriced_model_costs_nothing(self):
        usage = {"type": "usage", "input_tokens": 123, "output_tokens": 456}
        assert calculate_api_cost(ModelInfo(context_window=1), usage) == 0.0
