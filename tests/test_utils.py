import pytest
from unittest.mock import patch, mock_open

from llmwire.utils import (
    create_image_block,
    create_message,
    create_text_block,
    create_tool_result_block,
    create_tool_use_block,
    encode_image_file,
)


class TestUtils:

    def test_create_text_block(self):
        assert create_text_block("Hello") == {"type": "text", "text": "Hello"}

    def test_create_image_block_from_data_uri(self):
        block = create_image_block("data:image/png;base64,SGVsbG8=")
        assert block == {"type": "image", "media_type": "image/png", "data": "SGVsbG8="}

    def test_create_image_block_from_base64(self):
        block = create_image_block("SGVsbG8=", media_type="image/gif")
        assert block == {"type": "image", "media_type": "image/gif", "data": "SGVsbG8="}

    def test_create_image_block_from_bytes(self):
        assert create_image_block(b"\x89PNG", media_type="image/png")["data"] == b"\x89PNG"
        with pytest.raises(ValueError):
            create_image_block(b"\x89PNG")

    def test_create_image_block_unknown_source(self):
        with pytest.raises(ValueError, match="Cannot determine image source type"):
            create_image_block("https://example.com/cat.jpg")

    def test_create_image_block_from_file(self, tmp_path):
        path = tmp_path / "pixel.png"
        path.write_bytes(b"image data")
        block = create_image_block(path)
        assert block == {"type": "image", "media_type": "image/png", "data": "aW1hZ2UgZGF0YQ=="}

    def test_create_message_text(self):
        assert create_message("user", "Hello world") == {"role": "user", "content": "Hello world"}

    def test_create_message_multimodal(self):
        msg = create_message("user", ["Look at this", create_image_block("abc", media_type="image/png")])
        assert msg["role"] == "user"
        assert len(msg["content"]) == 2
        assert msg["content"][0] == {"type": "text", "text": "Look at this"}
        assert msg["content"][1]["type"] == "image"

    @patch("pathlib.Path.exists")
    @patch("builtins.open", new_callable=mock_open, read_data=b"image data")
    def test_encode_image_file(self, mock_file, mock_exists):
        mock_exists.return_value = True

        b64_data, media_type = encode_image_file("test.jpg")

        assert media_type == "image/jpeg"
        # "image data" in base64 is "aW1hZ2UgZGF0YQ=="
        assert b64_data == "aW1hZ2UgZGF0YQ=="

    def test_encode_image_file_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            encode_image_file(tmp_path / "nope.png")

    def test_encode_image_file_unsupported(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("text")
        with pytest.raises(ValueError, match="Unsupported image type"):
            encode_image_file(path)

    def test_create_tool_use_block(self):
        block = create_tool_use_block("call_123", "get_weather", {"city": "Paris"})
        assert block == {"type": "tool_use", "id": "call_123", "name": "get_weather", "input": {"city": "Paris"}}

    def test_create_tool_result_block(self):
        result = create_tool_result_block("call_123", "result content")
        assert result == {"type": "tool_result", "tool_use_id": "call_123", "content": "result content"}
        assert create_tool_result_block("call_123", "boom", is_error=True)["is_error"] is True
