import base64

from llmwire.models import azure_ai_model_info_sane_defaults, openai_model_info_sane_defaults
from llmwire.transform import (
    IMAGE_PLACEHOLDER,
    convert_to_anthropic_messages,
    convert_to_gemini_contents,
    convert_to_openai_messages,
)
from llmwire.types import ModelInfo

VISION = azure_ai_model_info_sane_defaults
TEXT_ONLY = openai_model_info_sane_defaults
PNG = b"\x89PNG\r\n"
PNG_B64 = base64.b64encode(PNG).decode("ascii")


def _tool_conversation():
    return [
        {"role": "user", "content": "What's the weather?"},
        {"role": "assistant", "content": [
            {"type": "text", "text": "Checking."},
            {"type": "tool_use", "id": "call_1", "name": "get_weather", "input": {"city": "Paris"}},
        ]},
        {"role": "user", "content": [
            {"type": "tool_result", "tool_use_id": "call_1", "content": "18C and sunny"},
            {"type": "text", "text": "Thanks"},
        ]},
    ]


class TestOpenAiConversion:
    def test_plain_text_turns(self):
        messages = [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
        ]
        assert convert_to_openai_messages(messages, VISION) == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
        ]

    def test_image_becomes_data_url(self):
        messages = [{"role": "user", "content": [
            {"type": "text", "text": "Describe"},
            {"type": "image", "media_type": "image/png", "data": PNG},
        ]}]
        converted = convert_to_openai_messages(messages, VISION)
        assert converted[0]["content"] == [
            {"type": "text", "text": "Describe"},
            {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{PNG_B64}"}},
        ]

    def test_image_dropped_for_text_only_model(self):
        messages = [{"role": "user", "content": [
            {"type": "image", "media_type": "image/png", "data": PNG_B64},
            {"type": "text", "text": "Describe"},
        ]}]
        converted = convert_to_openai_messages(messages, TEXT_ONLY)
        parts = converted[0]["content"]
        assert parts[0] == {"type": "text", "text": IMAGE_PLACEHOLDER}
        assert parts[1] == {"type": "text", "text": "Describe"}
        assert not any(part["type"] == "image_url" for part in parts)

    def test_tool_round_trip(self):
        converted = convert_to_openai_messages(_tool_conversation(), VISION)
        assert [m["role"] for m in converted] == ["user", "assistant", "tool", "user"]
        assert converted[1]["tool_calls"][0]["function"] == {
            "name": "get_weather",
            "arguments": '{"city": "Paris"}',
        }
        assert converted[2] == {"role": "tool", "tool_call_id": "call_1", "content": "18C and sunny"}
        assert converted[3] == {"role": "user", "content": "Thanks"}

    def test_system_turn_kept_in_place(self):
        messages = [{"role": "system", "content": "Be brief"}, {"role": "user", "content": "Hi"}]
        assert convert_to_openai_messages(messages, VISION)[0] == {"role": "system", "content": "Be brief"}

    def test_input_is_not_mutated(self):
        messages = _tool_conversation()
        snapshot = repr(messages)
        convert_to_openai_messages(messages, VISION)
        assert repr(messages) == snapshot


class TestAnthropicConversion:
    def test_system_turns_are_lifted(self):
        messages = [
            {"role": "system", "content": "Rule one"},
            {"role": "system", "content": "Rule two"},
            {"role": "user", "content": "Hi"},
        ]
        system, converted = convert_to_anthropic_messages(messages, VISION)
        assert system == "Rule one\n\nRule two"
        assert converted == [{"role": "user", "content": [{"type": "text", "text": "Hi"}]}]

    def test_no_system(self):
        system, _ = convert_to_anthropic_messages([{"role": "user", "content": "Hi"}], VISION)
        assert system is None

    def test_tool_blocks_keep_order(self):
        _, converted = convert_to_anthropic_messages(_tool_conversation(), VISION)
        assert [b["type"] for b in converted[1]["content"]] == ["text", "tool_use"]
        assert [b["type"] for b in converted[2]["content"]] == ["tool_result", "text"]
        assert converted[2]["content"][0]["tool_use_id"] == "call_1"

    def test_error_tool_result(self):
        messages = [{"role": "user", "content": [
            {"type": "tool_result", "tool_use_id": "t", "content": "failed", "is_error": True},
        ]}]
        _, converted = convert_to_anthropic_messages(messages, VISION)
        assert converted[0]["content"][0]["is_error"] is True

    def test_image_placeholder_for_text_only_model(self):
        info = ModelInfo(context_window=200_000, supports_images=False)
        messages = [{"role": "user", "content": [{"type": "image", "media_type": "image/png", "data": PNG}]}]
        _, converted = convert_to_anthropic_messages(messages, info)
        assert converted[0]["content"] == [{"type": "text", "text": IMAGE_PLACEHOLDER}]


class TestGeminiConversion:
    def test_roles_and_system_instruction(self):
        messages = [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
        ]
        system, contents = convert_to_gemini_contents(messages, VISION)
        assert system == {"parts": [{"text": "Be brief"}]}
        assert contents == [
            {"role": "user", "parts": [{"text": "Hi"}]},
            {"role": "model", "parts": [{"text": "Hello"}]},
        ]

    def test_function_response_uses_tool_name(self):
        _, contents = convert_to_gemini_contents(_tool_conversation(), VISION)
        assert contents[1]["parts"][1] == {"functionCall": {"name": "get_weather", "args": {"city": "Paris"}}}
        response = contents[2]["parts"][0]["functionResponse"]
        assert response["name"] == "get_weather"
        assert response["response"]["content"] == "18C and sunny"

    def test_inline_image(self):
        messages = [{"role": "user", "content": [{"type": "image", "media_type": "image/png", "data": PNG}]}]
        _, contents = convert_to_gemini_contents(messages, VISION)
        assert contents[0]["parts"] == [{"inlineData": {"mimeType": "image/png", "data": PNG_B64}}]
