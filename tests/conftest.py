import json
from typing import Any, Callable, Dict, List

import httpx
import httpx2
import pytest


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered in fixed reads; records whether it was closed."""

    def __init__(self, chunks: List[bytes]):
        self.chunks = chunks
        self.reads = 0
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            self.reads += 1
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


class Httpx2ChunkedStream(ChunkedStream, httpx2.AsyncByteStream):
    """ChunkedStream for clients built on httpx2 (the Anthropic SDK)."""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real credentials out of configuration tests."""
    for name in (
        "LLMWIRE_PROVIDER",
        "LLMWIRE_MODEL_ID",
        "LLMWIRE_THINKING_BUDGET",
        "ANTHROPIC_API_KEY",
        "ANTHROPIC_BASE_URL",
        "OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "OPENAI_MODEL_ID",
        "OPENAI_NATIVE_API_KEY",
        "DEEPSEEK_API_KEY",
        "MISTRAL_API_KEY",
        "GEMINI_API_KEY",
        "GOOGLE_API_KEY",
        "AZURE_AI_ENDPOINT",
        "AZURE_AI_KEY",
        "AZURE_AI_DEPLOYMENTS",
        "OLLAMA_BASE_URL",
        "LMSTUDIO_BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sse_body() -> Callable[..., bytes]:
    """Encode payloads as an event-stream body."""

    def build(*payloads: Any, done: bool = True, event: bool = False) -> bytes:
        frames = []
        for payload in payloads:
            data = payload if isinstance(payload, str) else json.dumps(payload)
            prefix = f"event: {payload.get('type')}\n" if event and isinstance(payload, dict) else ""
            frames.append(f"{prefix}data: {data}\n\n")
        if done:
            frames.append("data: [DONE]\n\n")
        return "".join(frames).encode("utf-8")

    return build


@pytest.fixture
def split_bytes() -> Callable[[bytes, int], List[bytes]]:
    def split(data: bytes, size: int) -> List[bytes]:
        return [data[i:i + size] for i in range(0, len(data), size)]

    return split


@pytest.fixture
def recorder() -> List[httpx.Request]:
    """Requests seen by the mock transport."""
    return []


@pytest.fixture
def mock_client(recorder) -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an AsyncClient whose requests are answered by ``handler``."""

    def build(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        def record(request: httpx.Request) -> httpx.Response:
            recorder.append(request)
            return handler(request)

        return httpx.AsyncClient(transport=httpx.MockTransport(record))

    return build


@pytest.fixture
def httpx2_mock_client(recorder) -> Callable[[Callable[[httpx2.Request], httpx2.Response]], httpx2.AsyncClient]:
    """Same as ``mock_client`` for SDKs that take an httpx2 client."""

    def build(handler: Callable[[httpx2.Request], httpx2.Response]) -> httpx2.AsyncClient:
        def record(request: httpx2.Request) -> httpx2.Response:
            recorder.append(request)
            return handler(request)

        return httpx2.AsyncClient(transport=httpx2.MockTransport(record))

    return build


@pytest.fixture
def chunked_stream() -> type:
    return ChunkedStream


@pytest.fixture
def httpx2_chunked_stream() -> type:
    return Httpx2ChunkedStream


@pytest.fixture
def conversation() -> List[Dict[str, Any]]:
    return [{"role": "user", "content": "Hello"}]
