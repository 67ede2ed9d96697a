"""
Incremental decoding of server-sent-event response bodies.

Backends stream ``text/event-stream`` bodies: each frame carries one or more
``data:`` lines and frames are separated by a blank line. Network reads do
not respect frame boundaries, so the decoder buffers across reads and only
hands out complete frames. Decoding output depends only on the byte sequence,
never on how it was split into reads.
"""

import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Callable, Dict, Iterable, List, Optional

from .types import StreamChunk, UsageChunk

logger = logging.getLogger(__name__)

DATA_FIELD = "data"
DONE_SENTINEL = "[DONE]"


class SSEDecoder:
    """
    Byte-level frame decoder.

    Feed raw bytes with ``feed()``; each call returns the data payloads of the
    frames completed by those bytes. After the sentinel payload the decoder
    is ``done`` and ignores further input.

    Only newly arrived text is scanned for a frame boundary, so a large frame
    delivered in many small reads costs linear time.

    Args:
        sentinel: Payload that marks the end of the stream, or None when the
            backend simply closes the connection.
    """

    def __init__(self, sentinel: Optional[str] = DONE_SENTINEL):
        self.sentinel = sentinel
        self.done = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._parts: List[str] = []
        self._ends_with_newline = False
        self._pending_cr = False

    def feed(self, data: bytes) -> List[str]:
        """
        Append bytes and extract every complete frame.

        Args:
            data (bytes): Next read from the transport, of any length.

        Returns:
            List[str]: Data payloads of completed frames, in arrival order.
        """
        if self.done:
            return []
        payloads: List[str] = []
        self._consume(self._normalize(self._decoder.decode(data)), payloads)
        return payloads

    def flush(self) -> List[str]:
        """
        Finish decoding at end of transport.

        A trailing frame without the closing blank line is still delivered.
        """
        if self.done:
            return []
        payloads: List[str] = []
        self._consume(self._normalize(self._decoder.decode(b"", final=True), final=True), payloads)
        tail = "".join(self._parts).rstrip("\n")
        self._reset_frame()
        if tail and not self.done:
            self._accept(tail, payloads)
        return payloads

    def _normalize(self, text: str, final: bool = False) -> str:
        if self._pending_cr:
            text = "\r" + text
            self._pending_cr = False
        # A trailing "\r" may be the first half of a "\r\n" split across reads
        if text.endswith("\r") and not final:
            self._pending_cr = True
            text = text[:-1]
        return text.replace("\r\n", "\n").replace("\r", "\n")

    def _consume(self, text: str, payloads: List[str]) -> None:
        while text and not self.done:
            if self._ends_with_newline and text[0] == "\n":
                # Blank line straddles the previous read
                frame = "".join(self._parts)[:-1]
                text = text[1:]
            else:
                index = text.find("\n\n")
                if index < 0:
                    self._parts.append(text)
                    self._ends_with_newline = text.endswith("\n")
                    return
                frame = "".join(self._parts) + text[:index]
                text = text[index + 2:]
            self._reset_frame()
            self._accept(frame, payloads)

    def _reset_frame(self) -> None:
        self._parts = []
        self._ends_with_newline = False

    def _accept(self, frame: str, payloads: List[str]) -> None:
        payload = parse_frame(frame)
        if payload is None:
            return
        if self.sentinel is not None and payload.strip() == self.sentinel:
            self.done = True
            self._reset_frame()
            return
        payloads.append(payload)


def parse_frame(frame: str) -> Optional[str]:
    """
    Extract the data payload of one frame.

    Comment lines (leading ``:``, used for keep-alives) and fields other than
    ``data`` are ignored; multiple data lines are joined with newlines.

    Returns:
        Optional[str]: The payload, or None if the frame carries no data.
    """
    data_lines = []
    for line in frame.split("\n"):
        if not line or line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == DATA_FIELD:
            data_lines.append(value)
    if not data_lines:
        return None
    return "\n".join(data_lines)


async def iter_sse_data(
    byte_stream: AsyncIterable[bytes],
    sentinel: Optional[str] = DONE_SENTINEL,
) -> AsyncIterator[str]:
    """
    Yield frame payloads from an async byte stream.

    Stops reading as soon as the sentinel frame is seen.
    """
    decoder = SSEDecoder(sentinel=sentinel)
    async for data in byte_stream:
        for payload in decoder.feed(data):
            yield payload
        if decoder.done:
            return
    for payload in decoder.flush():
        yield payload


async def iter_json_payloads(
    byte_stream: AsyncIterable[bytes],
    sentinel: Optional[str] = DONE_SENTINEL,
) -> AsyncIterator[Dict[str, Any]]:
    """
    Yield parsed JSON objects from an async byte stream.

    Frames that fail to parse, or parse to something other than an object,
    are skipped; backends emit keep-alives and the odd malformed frame.
    """
    async for payload in iter_sse_data(byte_stream, sentinel=sentinel):
        try:
            parsed = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed stream frame: %.200s", payload)
            continue
        if isinstance(parsed, dict):
            yield parsed


# =============================================================================
# Usage accounting
# =============================================================================

class UsageTracker:
    """
    Collects usage reports seen during one stream.

    Backends report usage once at the end, split across events, or
    cumulatively on every frame. The latest value of each field wins and a
    single UsageChunk is produced after the last frame.
    """

    def __init__(self):
        self.input_tokens: Optional[int] = None
        self.output_tokens: Optional[int] = None
        self.cache_write_tokens: Optional[int] = None
        self.cache_read_tokens: Optional[int] = None

    @property
    def reported(self) -> bool:
        return self.input_tokens is not None or self.output_tokens is not None

    def update(
        self,
        *,
        input_tokens: Optional[int] = None,
        output_tokens: Optional[int] = None,
        cache_write_tokens: Optional[int] = None,
        cache_read_tokens: Optional[int] = None,
    ) -> None:
        if input_tokens is not None:
            self.input_tokens = input_tokens
        if output_tokens is not None:
            self.output_tokens = output_tokens
        if cache_write_tokens is not None:
            self.cache_write_tokens = cache_write_tokens
        if cache_read_tokens is not None:
            self.cache_read_tokens = cache_read_tokens

    def chunk(self) -> Optional[UsageChunk]:
        """Build the final usage chunk, or None if nothing was reported."""
        if not self.reported:
            return None
        usage: UsageChunk = {
            "type": "usage",
            "input_tokens": self.input_tokens or 0,
            "output_tokens": self.output_tokens or 0,
        }
        if self.cache_write_tokens is not None:
            usage["cache_write_tokens"] = self.cache_write_tokens
        if self.cache_read_tokens is not None:
            usage["cache_read_tokens"] = self.cache_read_tokens
        return usage


# Maps one parsed payload to zero or more chunks, recording usage on the side
PayloadInterpreter = Callable[[Dict[str, Any], UsageTracker], Iterable[StreamChunk]]


async def decode_stream(
    byte_stream: AsyncIterable[bytes],
    interpret: PayloadInterpreter,
    sentinel: Optional[str] = DONE_SENTINEL,
) -> AsyncIterator[StreamChunk]:
    """
    Turn a raw response body into normalized stream chunks.

    Content chunks are yielded in arrival order; the usage chunk, if the
    backend reported any, is yielded once after the stream ends.

    Args:
        byte_stream: Raw body reads from the transport.
        interpret: Provider-specific payload interpreter. It may raise an
            ApiError for in-band error payloads, which ends the stream.
        sentinel: End-of-stream payload, or None.

    Yields:
        StreamChunk: Text, reasoning and (last) usage chunks.
    """
    usage = UsageTracker()
    async for payload in iter_json_payloads(byte_stream, sentinel=sentinel):
        for chunk in interpret(payload, usage):
            yield chunk
    final = usage.chunk()
    if final is not None:
        yield final


# =============================================================================
# OpenAI-style chat-completion chunks
# =============================================================================

def as_dict(value: Any) -> Dict[str, Any]:
    """Return ``value`` if it is a JSON object, else an empty dict."""
    return value if isinstance(value, dict) else {}


def first_choice(payload: Dict[str, Any]) -> Dict[str, Any]:
    choices = payload.get("choices")
    if isinstance(choices, list) and choices:
        return as_dict(choices[0])
    return {}


def interpret_openai_payload(payload: Dict[str, Any], usage: UsageTracker) -> Iterable[StreamChunk]:
    """
    Interpret one ``chat.completion.chunk`` payload.

    Reads ``choices[0].delta.content``, the ``reasoning_content`` /
    ``reasoning`` fields some servers use for thinking output, and the
    optional ``usage`` object (including cached prompt token counts). Parts
    of the payload that are not shaped as expected are ignored.
    """
    chunks: List[StreamChunk] = []
    delta = as_dict(first_choice(payload).get("delta"))

    reasoning = delta.get("reasoning_content") or delta.get("reasoning")
    if isinstance(reasoning, str) and reasoning:
        chunks.append({"type": "reasoning", "text": reasoning})

    content = delta.get("content")
    if isinstance(content, list):
        content = "".join(str(part.get("text") or "") for part in content if isinstance(part, dict))
    if isinstance(content, str) and content:
        chunks.append({"type": "text", "text": content})

    raw_usage = payload.get("usage")
    if isinstance(raw_usage, dict):
        details = as_dict(raw_usage.get("prompt_tokens_details"))
        cache_read = raw_usage.get("prompt_cache_hit_tokens", details.get("cached_tokens"))
        usage.update(
            input_tokens=raw_usage.get("prompt_tokens") or 0,
            output_tokens=raw_usage.get("completion_tokens") or 0,
            cache_write_tokens=raw_usage.get("prompt_cache_miss_tokens"),
            cache_read_tokens=cache_read,
        )
    return chunks


def is_content_filter_stop(payload: Dict[str, Any]) -> bool:
    """True when the backend stopped the output with its content filter."""
    return first_choice(payload).get("finish_reason") == "content_filter"
