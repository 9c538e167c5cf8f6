"""Core business logic for stackscan."""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable

from stackscan.archive import ArchiveStore, compute_stats
from stackscan.errors import (
    AmbiguousResultError,
    EmptyTranscriptError,
    ResultNotFoundError,
    StackScanError,
    ValidationError,
)
from stackscan.export import to_json, to_markdown
from stackscan.extraction import ExtractionClient
from stackscan.ingestion.transcript import TranscriptClient
from stackscan.ingestion.youtube import parse_video_id, thumbnail_url
from stackscan.llm import LLMClient
from stackscan.models import (
    AggregateStats,
    ExtractionResult,
    RunStats,
    ToolMention,
    TranscriptMetadata,
    VideoInfo,
)
from stackscan.visuals import VisualSynthesisClient

logger = logging.getLogger(__name__)

GENERIC_ERROR = "An unexpected processing error occurred."
DEFAULT_TITLE = "Untitled Session"
DEFAULT_AUTHOR = "Unknown Creator"


class AnalysisPhase(str, Enum):
    """Position of the current run in the pipeline."""

    IDLE = "IDLE"
    FETCHING_TRANSCRIPT = "FETCHING_TRANSCRIPT"
    AI_EXTRACTION = "AI_EXTRACTION"
    AI_VISUAL_GEN = "AI_VISUAL_GEN"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


_IN_FLIGHT = (
    AnalysisPhase.FETCHING_TRANSCRIPT,
    AnalysisPhase.AI_EXTRACTION,
    AnalysisPhase.AI_VISUAL_GEN,
)


class StackScanService:
    """Core service layer — single owner of pipeline state and the archive.

    Both the CLI and MCP server are thin wrappers over this class.
    Dependencies are injected via constructor for testability.
    """

    def __init__(
        self,
        archive: ArchiveStore,
        transcripts: TranscriptClient | None = None,
        extractor: ExtractionClient | None = None,
        visuals: VisualSynthesisClient | None = None,
        llm_client: LLMClient | None = None,
        on_phase: Callable[[AnalysisPhase], None] | None = None,
    ) -> None:
        self._archive = archive
        self._llm = llm_client or LLMClient()
        self._transcripts = transcripts
        self._extractor = extractor or ExtractionClient(llm=self._llm)
        self._visuals = visuals or VisualSynthesisClient(llm=self._llm)
        self._on_phase = on_phase

        self._phase = AnalysisPhase.IDLE
        self._error: str | None = None
        self._current: ExtractionResult | None = None

        self._archive.load()

    @property
    def phase(self) -> AnalysisPhase:
        return self._phase

    @property
    def error(self) -> str | None:
        """User-facing message of the last failed run."""
        return self._error

    @property
    def current(self) -> ExtractionResult | None:
        """Result of the last completed run."""
        return self._current

    @property
    def is_running(self) -> bool:
        return self._phase in _IN_FLIGHT

    async def analyze(self, url: str) -> ExtractionResult | None:
        """Run the full pipeline for a video URL and archive the result.

        A call made while the phase is not IDLE is ignored. Failures are
        not raised: they set ``error``, move the phase to FAILED and
        return None. An unrecognized URL sets ``error`` without starting
        a run.

        Args:
            url: YouTube video URL in any supported format.

        Returns:
            The archived ExtractionResult, or None if nothing was produced.
        """
        if self._phase is not AnalysisPhase.IDLE:
            logger.warning("Analysis in phase %s; ignoring request for %s", self._phase.value, url)
            return None

        self._error = None
        self._current = None
        started = time.monotonic()

        try:
            video_id = parse_video_id(url)
        except ValidationError as e:
            logger.warning("Rejected URL: %s", e)
            self._error = str(e)
            return None

        try:
            self._set_phase(AnalysisPhase.FETCHING_TRANSCRIPT)
            transcript = await self._transcript_client().fetch(url)
            if not transcript.chunks:
                raise EmptyTranscriptError("No transcript is available for this video.")

            self._set_phase(AnalysisPhase.AI_EXTRACTION)
            extracted = await self._extractor.extract(transcript.chunks)

            self._set_phase(AnalysisPhase.AI_VISUAL_GEN)
            tools = await self._illustrate(extracted.tools)

            result = self._assemble(video_id, extracted, tools, transcript.metadata, started)
            self._archive.upsert(result)
        except StackScanError as e:
            logger.error("Analysis of %s failed: %s", video_id, e)
            self._fail(str(e))
            return None
        except Exception as e:
            logger.exception("Unexpected error while analyzing %s", video_id)
            self._fail(str(e))
            return None

        self._current = result
        self._set_phase(AnalysisPhase.COMPLETED)
        logger.info(
            "Analysis complete: %s — %d tool(s) in %d ms",
            video_id,
            result.stats.total_tools,
            result.stats.processing_time_ms,
        )
        return result

    def reset(self) -> bool:
        """Return a finished run to IDLE so a new one can start.

        Returns:
            False if a run is still in flight (nothing changes).
        """
        if self.is_running:
            return False
        self._error = None
        self._current = None
        if self._phase is not AnalysisPhase.IDLE:
            self._set_phase(AnalysisPhase.IDLE)
        return True

    def list_results(self) -> list[ExtractionResult]:
        """All archived results, most recent first."""
        return self._archive.items

    def get_result(self, result_id: str) -> ExtractionResult:
        """Get an archived result by video ID.

        Raises:
            ResultNotFoundError: If the result is not in the archive.
        """
        result = self._archive.get(result_id)
        if result is None:
            raise ResultNotFoundError(f"Result not found: {result_id}")
        return result

    def resolve_result(self, query: str) -> ExtractionResult:
        """Smart result resolver — tiered resolution strategy.

        Tier 1: Exact video ID match
        Tier 2: Numeric index from list (most recent first)
        Tier 3: Case-insensitive substring match on title/author

        Raises:
            ResultNotFoundError: If no result can be resolved.
            AmbiguousResultError: If several results match.
        """
        result = self._archive.get(query)
        if result is not None:
            return result

        results = self._archive.items
        if query.isdigit():
            idx = int(query) - 1  # 1-based for humans
            if 0 <= idx < len(results):
                return results[idx]
            raise ResultNotFoundError(
                f"Index {query} out of range. Archive has {len(results)} result(s)."
            )

        q = query.lower()
        matches = [
            r for r in results
            if r.video and (q in r.video.title.lower() or q in r.video.author.lower())
        ]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise AmbiguousResultError(
                f"Multiple results match '{query}':\n"
                + "\n".join(f"  {i+1}. {r.video.title}" for i, r in enumerate(matches))
            )
        raise ResultNotFoundError(f"No result matching: {query}")

    def delete_result(self, result_id: str, confirm: Callable[[str], bool]) -> bool:
        """Delete an archived result after ``confirm`` approves it.

        Returns:
            True if the result was deleted, False if confirmation was declined.

        Raises:
            ResultNotFoundError: If the result is not in the archive.
        """
        self.get_result(result_id)
        self._archive.delete(result_id, confirm)
        return self._archive.get(result_id) is None

    def stats(self) -> AggregateStats:
        """Aggregate statistics across the whole archive."""
        return compute_stats(self._archive.items)

    def export_json(self, result_id: str | None = None) -> str:
        """JSON export of one result, or of the whole archive when no id is given."""
        if result_id:
            return to_json(self.get_result(result_id))
        return to_json(self._archive.items)

    def export_markdown(self, result_id: str) -> str:
        """Markdown bullet-list export of one result."""
        return to_markdown(self.get_result(result_id))

    async def aclose(self) -> None:
        if self._transcripts is not None:
            await self._transcripts.aclose()

    def _transcript_client(self) -> TranscriptClient:
        """Transcript client, created on first use."""
        if self._transcripts is None:
            self._transcripts = TranscriptClient()
        return self._transcripts

    async def _illustrate(self, tools: list[ToolMention]) -> list[ToolMention]:
        """Attach an AI icon to every tool; waits for all, fails none."""
        if not tools or not self._visuals.enabled:
            return list(tools)
        thumbnails = await asyncio.gather(*(self._safe_visual(tool) for tool in tools))
        return [
            tool.model_copy(update={"ai_thumbnail": thumb}) if thumb else tool
            for tool, thumb in zip(tools, thumbnails)
        ]

    async def _safe_visual(self, tool: ToolMention) -> str | None:
        try:
            return await self._visuals.synthesize(tool.name, tool.category)
        except Exception as e:
            logger.warning("Visual for %s failed: %s", tool.name, e)
            return None

    @staticmethod
    def _assemble(
        video_id: str,
        extracted: ExtractionResult,
        tools: list[ToolMention],
        metadata: TranscriptMetadata | None,
        started: float,
    ) -> ExtractionResult:
        ai_video = extracted.video or VideoInfo()
        meta = metadata or TranscriptMetadata()
        video = VideoInfo(
            title=ai_video.title or meta.title or DEFAULT_TITLE,
            author=ai_video.author or meta.author or DEFAULT_AUTHOR,
            thumbnail_url=ai_video.thumbnail_url or meta.thumbnail_url or thumbnail_url(video_id),
        )
        return extracted.model_copy(
            update={
                "id": video_id,
                "video": video,
                "tools": tools,
                "grounding_urls": list(dict.fromkeys(extracted.grounding_urls)),
                "timestamp": int(time.time() * 1000),
                "stats": RunStats(
                    total_tools=len(tools),
                    processing_time_ms=int((time.monotonic() - started) * 1000),
                ),
            }
        )

    def _set_phase(self, phase: AnalysisPhase) -> None:
        logger.debug("Phase %s -> %s", self._phase.value, phase.value)
        self._phase = phase
        if self._on_phase is not None:
            self._on_phase(phase)

    def _fail(self, message: str) -> None:
        self._error = message or GENERIC_ERROR
        self._set_phase(AnalysisPhase.FAILED)
