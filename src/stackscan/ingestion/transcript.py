"""Transcript retrieval via the Supadata transcript API."""

import asyncio
import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from stackscan.config import settings
from stackscan.errors import TranscriptFetchError
from stackscan.models import TranscriptChunk, TranscriptMetadata, TranscriptPayload

logger = logging.getLogger(__name__)

_DEFAULT_ERROR = "Failed to fetch transcript"
_PENDING_STATUSES = ("queued", "active", "pending", "processing")
_FAILED_STATUSES = ("failed", "error")


class TranscriptClient:
    """Fetches transcripts for a video URL from the transcript service.

    One request per fetch. Long videos are processed by the service as
    an asynchronous job, which is polled until it settles.
    """

    def __init__(
        self,
        api_key: str | None = None,
        endpoint: str | None = None,
        client: httpx.AsyncClient | None = None,
        poll_attempts: int | None = None,
        poll_interval: float | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.supadata_api_key
        self._endpoint = (endpoint or settings.transcript_endpoint).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=settings.http_timeout)
        self._poll_attempts = (
            poll_attempts if poll_attempts is not None else settings.transcript_poll_attempts
        )
        self._poll_interval = (
            poll_interval if poll_interval is not None else settings.transcript_poll_interval
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self, url: str) -> TranscriptPayload:
        """Fetch and decode the transcript for a video URL, waiting on jobs.

        Raises:
            TranscriptFetchError: If the service or the job fails.
        """
        payload = await self.fetch_transcript(url)
        job_id = payload.get("jobId") if isinstance(payload, dict) else None
        if job_id and not _has_content(payload):
            payload = await self._wait_for_job(str(job_id))
        return decode_transcript(payload)

    async def fetch_transcript(self, url: str) -> Any:
        """Request the transcript for ``url`` and return the parsed body as-is.

        Raises:
            TranscriptFetchError: On transport failure, a non-2xx status
                (carrying the service's message) or a malformed body.
        """
        response = await self._get(
            self._endpoint, params={"url": url, "text": "false"}
        )
        if response.is_error:
            raise TranscriptFetchError(_error_message(response))
        return _json_body(response)

    async def poll_job_status(self, job_id: str) -> Any:
        """Return the current state of an asynchronous transcript job."""
        response = await self._get(f"{self._endpoint}/{job_id}")
        if response.is_error:
            raise TranscriptFetchError("Failed to check job status")
        return _json_body(response)

    async def _wait_for_job(self, job_id: str) -> Any:
        logger.info("Transcript queued as job %s, polling", job_id)
        for attempt in range(1, self._poll_attempts + 1):
            await asyncio.sleep(self._poll_interval)
            status_payload = await self.poll_job_status(job_id)
            if not isinstance(status_payload, dict):
                continue
            status = str(status_payload.get("status", "")).lower()
            if status in _FAILED_STATUSES:
                message = status_payload.get("error") or status_payload.get("message")
                raise TranscriptFetchError(message or f"Transcript job {job_id} failed")
            if status == "completed" or _has_content(status_payload):
                return status_payload
            logger.debug("Job %s still %s (attempt %d)", job_id, status or "pending", attempt)
        raise TranscriptFetchError(
            f"Transcript job {job_id} did not complete after {self._poll_attempts} checks"
        )

    async def _get(self, url: str, params: dict | None = None) -> httpx.Response:
        try:
            return await self._client.get(
                url, params=params, headers={"x-api-key": self._api_key}
            )
        except httpx.HTTPError as e:
            raise TranscriptFetchError(f"{_DEFAULT_ERROR}: {e}") from e


def decode_transcript(payload: Any) -> TranscriptPayload:
    """Normalize a transcript service response.

    Chunks come from ``content`` when it is a list, otherwise from
    ``transcript``. Entries without string text are dropped.
    """
    if not isinstance(payload, dict):
        return TranscriptPayload()

    raw_chunks = payload.get("content")
    if not isinstance(raw_chunks, list):
        raw_chunks = payload.get("transcript")
    if not isinstance(raw_chunks, list):
        raw_chunks = []

    chunks = []
    for raw in raw_chunks:
        if not isinstance(raw, dict) or not isinstance(raw.get("text"), str):
            continue
        try:
            chunks.append(TranscriptChunk.model_validate(raw))
        except PydanticValidationError as e:
            logger.debug("Skipping malformed transcript chunk: %s", e)

    metadata = None
    raw_meta = payload.get("metadata")
    if isinstance(raw_meta, dict):
        try:
            metadata = TranscriptMetadata.model_validate(raw_meta)
        except PydanticValidationError as e:
            logger.debug("Ignoring malformed transcript metadata: %s", e)

    return TranscriptPayload(chunks=chunks, metadata=metadata)


def _has_content(payload: Any) -> bool:
    return isinstance(payload, dict) and (
        isinstance(payload.get("content"), list) or isinstance(payload.get("transcript"), list)
    )


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise TranscriptFetchError("Transcript service returned malformed JSON") from e


def _error_message(response: httpx.Response) -> str:
    """Pull the service's error message, falling back to a generic one."""
    try:
        body = response.json()
    except ValueError:
        return _DEFAULT_ERROR
    if isinstance(body, dict) and isinstance(body.get("message"), str) and body["message"]:
        return body["message"]
    return _DEFAULT_ERROR
