"""Tool extraction — turns a transcript into structured tool mentions."""

import json
import logging
import time
from typing import Any, Sequence

import litellm
from pydantic import ValidationError as PydanticValidationError

from stackscan.config import settings
from stackscan.errors import (
    JsonSyntaxError,
    LLMError,
    MalformedResponseError,
    SafetyFilterError,
)
from stackscan.llm import LLMClient
from stackscan.models import (
    ExtractionResult,
    QualityFlag,
    RunStats,
    SourceInfo,
    ToolMention,
    TranscriptChunk,
    VideoInfo,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an elite software project extraction engine.
TASK: Extract specific software tools, frameworks, models, CLIs, or services mentioned in the provided transcript.

RULES:
1. ONLY output valid JSON.
2. Filter out generic terms like "CLI", "AI", "Script", "Python", "Rust", "Terminal" unless they are part of a specific project name.
3. Merge duplicate mentions into a single tool entry.
4. "confidence" (0-1) should reflect how certain you are that the item is a specific software project.
5. "evidence" must use a verbatim quote from the text.

OUTPUT SCHEMA:
{
  "source": { "type": "transcript", "note": "Extracted via Gemini AI" },
  "tools": [
    {
      "name": "Original Project Name",
      "normalized": "kebab-case-slug",
      "category": "ai-model|ai-coding-agent|devtools|cli|networking|creative-coding|other",
      "mentionsCount": number,
      "confidence": number,
      "officialUrl": "https://... (verified via search, optional)",
      "githubUrl": "https://github.com/... (optional)",
      "evidence": [{ "offsetMs": 0, "durationMs": 0, "quote": "..." }],
      "notes": ["1-sentence description of what it does"]
    }
  ],
  "qualityFlags": [
    { "type": "warning|info", "severity": "info|warning", "message": "reasoning about data quality" }
  ]
}

BE CONCISE. DO NOT INCLUDE MORE THAN 12 TOOLS. IF THE LIST IS LONG, CHOOSE THE MOST SIGNIFICANT ONES."""

_SEARCH_GROUNDING = [{"googleSearch": {}}]
_BLOCKED_MESSAGE = "Safety filters prevented transcript processing."


class ExtractionClient:
    """Sends a transcript to the extraction model and decodes the tool list."""

    def __init__(
        self,
        llm: LLMClient,
        max_chunks: int | None = None,
        max_tools: int | None = None,
        temperature: float | None = None,
    ) -> None:
        self._llm = llm
        self._max_chunks = max_chunks if max_chunks is not None else settings.max_transcript_chunks
        self._max_tools = max_tools if max_tools is not None else settings.max_tools
        self._temperature = (
            temperature if temperature is not None else settings.extraction_temperature
        )

    async def extract(self, chunks: Sequence[TranscriptChunk]) -> ExtractionResult:
        """Extract tool mentions from transcript chunks.

        Returns an ExtractionResult with the placeholder id ``"pending"``;
        the caller stamps the real id, video and timing.

        Raises:
            LLMError: If the provider request fails.
            SafetyFilterError: If the provider blocked the request.
            MalformedResponseError: If the response holds no JSON object.
            JsonSyntaxError: If the JSON object does not parse.
        """
        transcript_text = " ".join(
            f"[{i}] {chunk.text}" for i, chunk in enumerate(chunks[: self._max_chunks])
        )
        prompt = (
            "Process this transcript and extract technical tools/projects. "
            "Verify URLs via Google Search tool. "
            f"Transcript data: {transcript_text}"
        )

        try:
            completion = await self._llm.complete(
                prompt,
                system=SYSTEM_PROMPT,
                temperature=self._temperature,
                tools=_SEARCH_GROUNDING,
            )
        except LLMError as e:
            if _is_safety_block(e):
                raise SafetyFilterError(_BLOCKED_MESSAGE) from e
            raise

        if completion.finish_reason == "content_filter":
            raise SafetyFilterError(_BLOCKED_MESSAGE)
        if not completion.text:
            raise MalformedResponseError("Extraction model returned an empty response.")

        data = parse_json_payload(completion.text)
        result = decode_extraction(data, max_tools=self._max_tools)
        result.grounding_urls = extract_grounding_urls(completion.grounding_chunks)
        logger.info(
            "Extracted %d tool(s), %d grounding URL(s)",
            len(result.tools),
            len(result.grounding_urls),
        )
        return result


def parse_json_payload(text: str) -> Any:
    """Parse the JSON object embedded in a free-text model response.

    Only the span from the first ``{`` to the last ``}`` is parsed, so
    prose around the object is tolerated.

    Raises:
        MalformedResponseError: If there is no ``{ ... }`` span.
        JsonSyntaxError: If the span is not valid JSON.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        logger.error("Extraction model returned no JSON object: %.200s", text)
        raise MalformedResponseError(
            "Extraction model response did not contain a JSON object."
        )
    candidate = text[start : end + 1]
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.error("Malformed JSON from extraction model: %.200s", candidate)
        raise JsonSyntaxError(f"Extraction response is not valid JSON: {e}") from e


def decode_extraction(data: Any, max_tools: int | None = None) -> ExtractionResult:
    """Validate untrusted extraction JSON into an ExtractionResult.

    A missing or non-list ``tools`` becomes an empty list; tool and flag
    entries that fail validation are skipped.
    """
    if not isinstance(data, dict):
        data = {}
    limit = max_tools if max_tools is not None else settings.max_tools

    tools = _decode_list(data.get("tools"), ToolMention, "tool")[:limit]
    flags = _decode_list(data.get("qualityFlags"), QualityFlag, "quality flag")

    source = None
    if isinstance(data.get("source"), dict):
        try:
            source = SourceInfo.model_validate(data["source"])
        except PydanticValidationError:
            logger.debug("Ignoring malformed source block")

    video = None
    if isinstance(data.get("video"), dict):
        try:
            video = VideoInfo.model_validate(data["video"])
        except PydanticValidationError:
            logger.debug("Ignoring malformed video block")

    return ExtractionResult(
        id="pending",
        video=video,
        source=source,
        tools=tools,
        quality_flags=flags,
        timestamp=int(time.time() * 1000),
        stats=RunStats(total_tools=len(tools)),
    )


def extract_grounding_urls(chunks: Any) -> list[str]:
    """Collect http(s) citation URLs from grounding chunks, in order."""
    if not isinstance(chunks, list):
        return []
    urls = []
    for chunk in chunks:
        web = chunk.get("web") if isinstance(chunk, dict) else None
        uri = web.get("uri") if isinstance(web, dict) else None
        if isinstance(uri, str) and uri.startswith(("http://", "https://")):
            urls.append(uri)
    return urls


def _decode_list(raw: Any, model, label: str) -> list:
    if not isinstance(raw, list):
        return []
    items = []
    for entry in raw:
        try:
            items.append(model.model_validate(entry))
        except PydanticValidationError as e:
            logger.warning("Skipping invalid %s from extraction model: %s", label, e.errors()[:1])
    return items


def _is_safety_block(error: LLMError) -> bool:
    if isinstance(error.__cause__, litellm.ContentPolicyViolationError):
        return True
    return "block" in str(error).lower()
