"""
Conversion from canonical messages to provider request shapes.

All converters are pure: no I/O, no randomness. They preserve message order
and block order, and down-convert content the target model cannot accept
(images for text-only models) to a text placeholder instead of failing.
"""

import base64
import json
from typing import Any, Dict, List, Optional, Tuple, Union

from .types import CanonicalMessage, ContentBlock, ImageBlock, ModelInfo

IMAGE_PLACEHOLDER = "[Image omitted: the selected model does not accept image input]"


def _blocks(content: Union[str, List[ContentBlock]]) -> List[ContentBlock]:
    """Normalize shorthand string content to a single text block."""
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    return list(content)


def _b64(data: Union[bytes, str]) -> str:
    if isinstance(data, bytes):
        return base64.b64encode(data).decode("ascii")
    return data


def _text_of(content: Union[str, List[Any]]) -> str:
    """Flatten tool-result style content to plain text."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if block.get("type") == "text":
            parts.append(block.get("text", ""))
        elif block.get("type") == "image":
            parts.append("[image]")
    return "\n".join(parts)


# =============================================================================
# OpenAI chat-completions format
# =============================================================================

def _openai_image(block: ImageBlock, info: ModelInfo) -> Dict[str, Any]:
    if not info.supports_images:
        return {"type": "text", "text": IMAGE_PLACEHOLDER}
    return {
        "type": "image_url",
        "image_url": {"url": f"data:{block['media_type']};base64,{_b64(block['data'])}"},
    }


def _openai_content(parts: List[Dict[str, Any]]) -> Union[str, List[Dict[str, Any]]]:
    # A lone text part is sent as a plain string for servers without multipart support
    if len(parts) == 1 and parts[0]["type"] == "text":
        return parts[0]["text"]
    return parts


def convert_to_openai_messages(
    messages: List[CanonicalMessage],
    info: ModelInfo,
) -> List[Dict[str, Any]]:
    """
    Convert canonical messages to OpenAI chat-completions messages.

    Handles:
    - Tool results in user turns become separate ``tool`` role messages,
      emitted before the rest of that turn (the API requires them to follow
      the assistant's tool calls directly). Images inside tool results move
      to the user message that follows, since tool messages are text only.
    - Assistant tool invocations become ``tool_calls`` entries.
    - Images become data-URL ``image_url`` parts, or a text placeholder when
      ``info.supports_images`` is False.

    Args:
        messages (List[CanonicalMessage]): Conversation in canonical form.
        info (ModelInfo): Target model capabilities.

    Returns:
        List[Dict[str, Any]]: OpenAI-compatible message list.
    """
    converted: List[Dict[str, Any]] = []

    for msg in messages:
        role = msg["role"]
        blocks = _blocks(msg["content"])

        if role == "system":
            converted.append({"role": "system", "content": _text_of(blocks)})
            continue

        if role == "assistant":
            text_parts = []
            tool_calls = []
            for block in blocks:
                kind = block.get("type")
                if kind == "text":
                    text_parts.append(block["text"])
                elif kind == "tool_use":
                    tool_calls.append({
                        "id": block["id"],
                        "type": "function",
                        "function": {
                            "name": block["name"],
                            "arguments": json.dumps(block["input"]),
                        },
                    })
                # Assistants cannot send images; anything else is ignored
            assistant_msg: Dict[str, Any] = {"role": "assistant", "content": "\n".join(text_parts)}
            if tool_calls:
                assistant_msg["tool_calls"] = tool_calls
            converted.append(assistant_msg)
            continue

        # user turn
        user_parts: List[Dict[str, Any]] = []
        for block in blocks:
            kind = block.get("type")
            if kind == "tool_result":
                result = block["content"]
                converted.append({
                    "role": "tool",
                    "tool_call_id": block["tool_use_id"],
                    "content": _text_of(result),
                })
                if not isinstance(result, str):
                    for part in result:
                        if part.get("type") == "image":
                            user_parts.append(_openai_image(part, info))
            elif kind == "text":
                user_parts.append({"type": "text", "text": block["text"]})
            elif kind == "image":
                user_parts.append(_openai_image(block, info))

        if user_parts:
            converted.append({"role": "user", "content": _openai_content(user_parts)})

    return converted


# =============================================================================
# Anthropic messages format
# =============================================================================

def _anthropic_image(block: ImageBlock, info: ModelInfo) -> Dict[str, Any]:
    if not info.supports_images:
        return {"type": "text", "text": IMAGE_PLACEHOLDER}
    return {
        "type": "image",
        "source": {
            "type": "base64",
            "media_type": block["media_type"],
            "data": _b64(block["data"]),
        },
    }


def convert_to_anthropic_messages(
    messages: List[CanonicalMessage],
    info: ModelInfo,
) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    """
    Convert canonical messages to Anthropic's messages format.

    System turns are lifted into the separate ``system`` parameter (joined
    with blank lines); every other block maps one to one.

    Args:
        messages (List[CanonicalMessage]): Conversation in canonical form.
        info (ModelInfo): Target model capabilities.

    Returns:
        Tuple containing:
        - system_text: Combined system text from system turns (or None)
        - converted: Anthropic message dicts
    """
    system_parts: List[str] = []
    converted: List[Dict[str, Any]] = []

    for msg in messages:
        blocks = _blocks(msg["content"])
        if msg["role"] == "system":
            system_parts.append(_text_of(blocks))
            continue

        content: List[Dict[str, Any]] = []
        for block in blocks:
            kind = block.get("type")
            if kind == "text":
                content.append({"type": "text", "text": block["text"]})
            elif kind == "image":
                content.append(_anthropic_image(block, info))
            elif kind == "tool_use":
                content.append({
                    "type": "tool_use",
                    "id": block["id"],
                    "name": block["name"],
                    "input": block["input"],
                })
            elif kind == "tool_result":
                result = block["content"]
                if isinstance(result, str):
                    result_content: Union[str, List[Dict[str, Any]]] = result
                else:
                    result_content = [
                        _anthropic_image(part, info) if part.get("type") == "image"
                        else {"type": "text", "text": part.get("text", "")}
                        for part in result
                    ]
                tool_result: Dict[str, Any] = {
                    "type": "tool_result",
                    "tool_use_id": block["tool_use_id"],
                    "content": result_content,
                }
                if block.get("is_error"):
                    tool_result["is_error"] = True
                content.append(tool_result)

        if content:
            converted.append({"role": msg["role"], "content": content})

    system_text = "\n\n".join(system_parts) if system_parts else None
    return system_text, converted


# =============================================================================
# Gemini contents format
# =============================================================================

def convert_to_gemini_contents(
    messages: List[CanonicalMessage],
    info: ModelInfo,
) -> Tuple[Optional[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Convert canonical messages to Gemini ``contents``.

    Gemini names the assistant role ``model`` and answers tool calls by
    function name rather than id, so tool-use ids seen earlier in the
    conversation are mapped back to their names.

    Returns:
        Tuple containing:
        - system_instruction: ``{"parts": [...]}`` built from system turns (or None)
        - contents: Gemini content dicts
    """
    system_parts: List[Dict[str, Any]] = []
    contents: List[Dict[str, Any]] = []
    tool_names: Dict[str, str] = {}

    for msg in messages:
        blocks = _blocks(msg["content"])
        if msg["role"] == "system":
            system_parts.append({"text": _text_of(blocks)})
            continue

        parts: List[Dict[str, Any]] = []
        for block in blocks:
            kind = block.get("type")
            if kind == "text":
                parts.append({"text": block["text"]})
            elif kind == "image":
                if info.supports_images:
                    parts.append({
                        "inlineData": {"mimeType": block["media_type"], "data": _b64(block["data"])}
                    })
                else:
                    parts.append({"text": IMAGE_PLACEHOLDER})
            elif kind == "tool_use":
                tool_names[block["id"]] = block["name"]
                parts.append({"functionCall": {"name": block["name"], "args": block["input"]}})
            elif kind == "tool_result":
                name = tool_names.get(block["tool_use_id"], block["tool_use_id"])
                parts.append({
                    "functionResponse": {
                        "name": name,
                        "response": {"name": name, "content": _text_of(block["content"])},
                    }
                })

        if parts:
            contents.append({"role": "model" if msg["role"] == "assistant" else "user", "parts": parts})

    system_instruction = {"parts": system_parts} if system_parts else None
    return system_instruction, contents
