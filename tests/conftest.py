# tests/conftest.py
"""Shared fixtures for stackscan tests."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from stackscan.archive import ArchiveStore
from stackscan.ingestion.transcript import TranscriptClient
from stackscan.models import (
    ExtractionResult,
    RunStats,
    ToolMention,
    TranscriptChunk,
    VideoInfo,
)
from stackscan.storage.sqlite import SQLiteKeyValueStore


VIDEO_ID = "dQw4w9WgXcQ"
VIDEO_URL = f"https://www.youtube.com/watch?v={VIDEO_ID}"

EXTRACTION_JSON = {
    "source": {"type": "transcript", "note": "Extracted via Gemini AI"},
    "tools": [
        {
            "name": "Claude Code",
            "normalized": "claude-code",
            "category": "ai-coding-agent",
            "mentionsCount": 4,
            "confidence": 0.95,
            "evidence": [{"offsetMs": 1200, "durationMs": 3000, "quote": "I use Claude Code daily"}],
            "notes": ["Agentic coding assistant in the terminal."],
        },
        {
            "name": "Ghostty",
            "category": "devtools",
            "mentionsCount": 2,
            "confidence": 0.9,
            "officialUrl": "https://ghostty.org",
            "notes": ["GPU-accelerated terminal emulator."],
        },
        {
            "name": "Tailscale",
            "category": "Networking",
            "mentionsCount": 1,
            "confidence": 0.8,
            "notes": "Mesh VPN built on WireGuard.",
        },
    ],
    "qualityFlags": [{"type": "info", "severity": "info", "message": "Clear audio"}],
}


def make_tool(name: str, category: str = "devtools", mentions: int = 1, thumb: str | None = None) -> ToolMention:
    return ToolMention(
        name=name,
        category=category,
        mentions_count=mentions,
        confidence=0.9,
        notes=[f"{name} does things."],
        ai_thumbnail=thumb,
    )


def make_result(result_id: str, tools: list[ToolMention] | None = None, title: str = "A Video") -> ExtractionResult:
    tools = tools if tools is not None else [make_tool("Ghostty")]
    return ExtractionResult(
        id=result_id,
        video=VideoInfo(title=title, author="Some Creator", thumbnail_url="https://img/x.jpg"),
        tools=tools,
        timestamp=1_700_000_000_000,
        stats=RunStats(total_tools=len(tools), processing_time_ms=1234),
    )


@pytest.fixture
def sample_chunks():
    """Transcript chunks as returned by the transcript service."""
    return [
        TranscriptChunk(text="Today I'll show my setup.", offset=0, duration=2000, lang="en"),
        TranscriptChunk(text="I use Claude Code daily in Ghostty.", offset=2000, duration=3000, lang="en"),
        TranscriptChunk(text="Everything talks over Tailscale.", offset=5000, duration=2500, lang="en"),
    ]


@pytest.fixture
def sample_result():
    """Archived result with two tools, one carrying a thumbnail."""
    return make_result(
        VIDEO_ID,
        tools=[
            make_tool("Claude Code", "ai-coding-agent", 4, thumb="data:image/png;base64,AAA"),
            make_tool("Ghostty", "devtools", 2),
        ],
        title="My 2025 Dev Setup",
    )


@pytest.fixture
def kv_store():
    """SQLiteKeyValueStore backed by in-memory database."""
    return SQLiteKeyValueStore(":memory:")


@pytest.fixture
def archive(kv_store):
    """ArchiveStore over an in-memory store with default bounds."""
    return ArchiveStore(kv_store, max_items=50, keep_thumbnails=5)


def transcript_handler(payload=None, status_code: int = 200):
    """Build an httpx.MockTransport handler replying with a fixed transcript body."""
    body = payload if payload is not None else {
        "content": [
            {"text": "Today I'll show my setup.", "offset": 0, "duration": 2000, "lang": "en"},
            {"text": "I use Claude Code daily in Ghostty.", "offset": 2000, "duration": 3000, "lang": "en"},
            {"text": "Everything talks over Tailscale.", "offset": 5000, "duration": 2500, "lang": "en"},
        ],
        "lang": "en",
    }

    def handler(request: httpx.Request) -> httpx.Response:
        handler.requests.append(request)
        return httpx.Response(status_code, json=body)

    handler.requests = []
    return handler


@pytest.fixture
def mock_transcripts():
    """TranscriptClient talking to a mocked transport."""
    handler = transcript_handler()
    client = TranscriptClient(
        api_key="test-supadata-key",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        poll_interval=0,
    )
    client._handler = handler
    return client


def completion_response(content: str, finish_reason: str = "stop", grounding=None):
    """LiteLLM-shaped chat completion response."""
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.choices[0].finish_reason = finish_reason
    response.vertex_ai_grounding_metadata = grounding
    return response


def image_response(b64: str | None = "iVBORw0KGgo="):
    """LiteLLM-shaped image generation response."""
    return {"data": [{"b64_json": b64}] if b64 else []}


@pytest.fixture
def mock_llm():
    """LLMClient with mocked litellm.acompletion and litellm.aimage_generation."""
    from stackscan.llm import LLMClient

    grounding = [{"groundingChunks": [
        {"web": {"uri": "https://ghostty.org", "title": "Ghostty"}},
        {"web": {"uri": "https://tailscale.com", "title": "Tailscale"}},
    ]}]
    with patch("stackscan.llm.litellm.acompletion", new_callable=AsyncMock) as mock_completion, \
            patch("stackscan.llm.litellm.aimage_generation", new_callable=AsyncMock) as mock_image:
        mock_completion.return_value = completion_response(
            json.dumps(EXTRACTION_JSON), grounding=grounding
        )
        mock_image.return_value = image_response()

        with patch.dict("os.environ", {"GEMINI_API_KEY": "test-key-123"}):
            client = LLMClient()
            client._mock_completion = mock_completion
            client._mock_image = mock_image
            yield client


@pytest.fixture
def service(archive, mock_transcripts, mock_llm):
    """Fully wired StackScanService with all mocked dependencies."""
    from stackscan.service import StackScanService

    return StackScanService(
        archive=archive,
        transcripts=mock_transcripts,
        llm_client=mock_llm,
    )
