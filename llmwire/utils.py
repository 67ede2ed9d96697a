import base64
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .types import (
    CanonicalMessage, ContentBlock, ImageBlock, Role, TextBlock, ToolResultBlock, ToolUseBlock
)

# =============================================================================
# Image Helpers
# =============================================================================

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def encode_image_file(image_path: Union[str, Path]) -> Tuple[str, str]:
    """
    Encode a local image file to base64.

    The media type is taken from the file extension.

    Args:
        image_path (Union[str, Path]): Path to the image file.

    Returns:
        Tuple[str, str]: A tuple containing:
            - b64_data (str): The base64-encoded file content.
            - media_type (str): The media type (e.g., 'image/png').

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the extension is not a supported image type.
    """
    path = Path(image_path)
    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    media_type = MIME_TYPES.get(path.suffix.lower())
    if media_type is None:
        raise ValueError(f"Unsupported image type: {path.suffix or path.name}")

    with open(path, "rb") as f:
        b64_data = base64.b64encode(f.read()).decode("utf-8")

    return b64_data, media_type


def create_image_block(
    source: Union[str, Path, bytes],
    *,
    media_type: Optional[str] = None,
) -> ImageBlock:
    """
    Create an image block.

    Args:
        source: Can be:
            - A local file path
            - A data URI (e.g., "data:image/png;base64,...")
            - Raw bytes or base64 data (requires ``media_type``)
        media_type (str, optional): Required for raw bytes or base64 data.

    Returns:
        ImageBlock: ``{"type": "image", "media_type": ..., "data": ...}``.

    Raises:
        ValueError: If the source type cannot be determined.
    """
    if isinstance(source, bytes):
        if not media_type:
            raise ValueError("media_type is required for raw image bytes")
        return {"type": "image", "media_type": media_type, "data": source}

    source_str = str(source)
    if source_str.startswith("data:"):
        # data:[<mediatype>][;base64],<data>
        header, data = source_str.split(",", 1)
        return {"type": "image", "media_type": header[5:].split(";")[0], "data": data}
    if media_type:
        return {"type": "image", "media_type": media_type, "data": source_str}
    if len(source_str) < 260 and Path(source_str).exists():
        data, detected = encode_image_file(source_str)
        return {"type": "image", "media_type": detected, "data": data}

    raise ValueError(
        f"Cannot determine image source type for: {source_str[:50]}... "
        "Provide media_type for raw base64 data."
    )


# =============================================================================
# Content Helpers
# =============================================================================

def create_text_block(text: str) -> TextBlock:
    return {"type": "text", "text": text}


def create_tool_use_block(tool_use_id: str, name: str, tool_input: Optional[Dict[str, Any]] = None) -> ToolUseBlock:
    """Create the block recording an assistant tool invocation."""
    return {"type": "tool_use", "id": tool_use_id, "name": name, "input": tool_input or {}}


def create_tool_result_block(
    tool_use_id: str,
    content: Union[str, List[Union[TextBlock, ImageBlock]]],
    is_error: bool = False,
) -> ToolResultBlock:
    """
    Create the block answering a tool invocation.

    Args:
        tool_use_id (str): Id of the matching tool_use block.
        content: Tool output as text or text/image blocks.
        is_error (bool): Whether the tool failed.

    Returns:
        ToolResultBlock: The result block.
    """
    block: ToolResultBlock = {"type": "tool_result", "tool_use_id": tool_use_id, "content": content}
    if is_error:
        block["is_error"] = True
    return block


def create_message(
    role: Role,
    content: Union[str, List[Union[str, ContentBlock]]],
) -> CanonicalMessage:
    """
    Create a canonical message.

    String elements inside a content list are turned into text blocks.

    Args:
        role (str): 'system', 'user' or 'assistant'.
        content (Union[str, List]): The content of the message.

    Returns:
        CanonicalMessage: The message dict.
    """
    if isinstance(content, str):
        return {"role": role, "content": content}
    blocks: List[ContentBlock] = [
        create_text_block(part) if isinstance(part, str) else part for part in content
    ]
    return {"role": role, "content": blocks}
