# tests/test_transcript.py
"""Tests for the transcript service client."""

import httpx
import pytest

from conftest import VIDEO_URL, transcript_handler
from stackscan.errors import TranscriptFetchError
from stackscan.ingestion.transcript import TranscriptClient, decode_transcript


def _client(handler, **kwargs) -> TranscriptClient:
    return TranscriptClient(
        api_key="test-key",
        endpoint="https://transcripts.test/v1/transcript",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        poll_interval=0,
        **kwargs,
    )


class TestFetch:
    @pytest.mark.asyncio()
    async def test_fetch_decodes_chunks(self):
        handler = transcript_handler()
        client = _client(handler)
        payload = await client.fetch(VIDEO_URL)
        assert len(payload.chunks) == 3
        assert payload.chunks[1].text == "I use Claude Code daily in Ghostty."
        assert payload.chunks[0].lang == "en"

    @pytest.mark.asyncio()
    async def test_request_shape(self):
        handler = transcript_handler()
        client = _client(handler)
        await client.fetch(VIDEO_URL)
        request = handler.requests[0]
        assert request.method == "GET"
        assert request.headers["x-api-key"] == "test-key"
        assert request.url.params["url"] == VIDEO_URL
        assert request.url.params["text"] == "false"

    @pytest.mark.asyncio()
    async def test_service_error_message_surfaced(self):
        client = _client(transcript_handler({"message": "rate limited"}, status_code=500))
        with pytest.raises(TranscriptFetchError, match="rate limited"):
            await client.fetch(VIDEO_URL)

    @pytest.mark.asyncio()
    async def test_error_without_message_uses_default(self):
        client = _client(transcript_handler({"detail": "nope"}, status_code=404))
        with pytest.raises(TranscriptFetchError, match="Failed to fetch transcript"):
            await client.fetch(VIDEO_URL)

    @pytest.mark.asyncio()
    async def test_transport_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        with pytest.raises(TranscriptFetchError, match="connection refused"):
            await client.fetch(VIDEO_URL)

    @pytest.mark.asyncio()
    async def test_malformed_body(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>not json</html>")

        client = _client(handler)
        with pytest.raises(TranscriptFetchError, match="malformed"):
            await client.fetch(VIDEO_URL)

    @pytest.mark.asyncio()
    async def test_empty_content_is_not_an_error(self):
        client = _client(transcript_handler({"content": []}))
        payload = await client.fetch(VIDEO_URL)
        assert payload.chunks == []


class TestJobPolling:
    @pytest.mark.asyncio()
    async def test_job_polled_until_completed(self):
        replies = [
            {"jobId": "job-1"},
            {"status": "active"},
            {"status": "completed", "content": [{"text": "hello", "offset": 0}]},
        ]

        def handler(request):
            return httpx.Response(200, json=replies.pop(0))

        client = _client(handler)
        payload = await client.fetch(VIDEO_URL)
        assert [c.text for c in payload.chunks] == ["hello"]
        assert replies == []

    @pytest.mark.asyncio()
    async def test_job_failure(self):
        replies = [{"jobId": "job-1"}, {"status": "failed", "error": "No captions"}]

        def handler(request):
            return httpx.Response(200, json=replies.pop(0))

        client = _client(handler)
        with pytest.raises(TranscriptFetchError, match="No captions"):
            await client.fetch(VIDEO_URL)

    @pytest.mark.asyncio()
    async def test_job_gives_up(self):
        def handler(request):
            if request.url.path.endswith("/job-1"):
                return httpx.Response(200, json={"status": "queued"})
            return httpx.Response(200, json={"jobId": "job-1"})

        client = _client(handler, poll_attempts=3)
        with pytest.raises(TranscriptFetchError, match="did not complete"):
            await client.fetch(VIDEO_URL)


class TestDecodeTranscript:
    def test_transcript_field_fallback(self):
        payload = decode_transcript({"transcript": [{"text": "a"}, {"text": "b"}]})
        assert [c.text for c in payload.chunks] == ["a", "b"]

    def test_drops_entries_without_text(self):
        payload = decode_transcript({"content": [{"text": "ok"}, {"offset": 5}, {"text": 42}, "junk"]})
        assert [c.text for c in payload.chunks] == ["ok"]

    def test_metadata(self):
        payload = decode_transcript({
            "content": [],
            "metadata": {"title": "My Setup", "author": "Dev", "thumbnailUrl": "https://t/x.jpg"},
        })
        assert payload.metadata.title == "My Setup"
        assert payload.metadata.thumbnail_url == "https://t/x.jpg"

    def test_non_dict_payload(self):
        assert decode_transcript(["nope"]).chunks == []
