"""FastMCP server — thin wrapper exposing StackScanService as MCP tools."""

from fastmcp import FastMCP

from stackscan.archive import ArchiveStore
from stackscan.config import settings
from stackscan.errors import ResultNotFoundError
from stackscan.models import ExtractionResult
from stackscan.service import StackScanService
from stackscan.storage.sqlite import SQLiteKeyValueStore


mcp = FastMCP(
    name="stackscan",
    instructions=(
        "stackscan extracts the software tools mentioned in YouTube videos. "
        "Use analyze_video with a YouTube URL, then list_results, get_result, "
        "archive_stats, and export_result to explore the archive."
    ),
)

_service: StackScanService | None = None


def _get_service() -> StackScanService:
    """Lazy-initialise the service singleton with default dependencies."""
    global _service
    if _service is None:
        settings.ensure_dirs()
        _service = StackScanService(
            archive=ArchiveStore(SQLiteKeyValueStore(quota_chars=settings.storage_quota_chars)),
        )
    return _service


@mcp.tool(annotations={"readOnlyHint": False, "idempotentHint": False})
async def analyze_video(url: str) -> dict:
    """Extract the software tools mentioned in a YouTube video.

    Fetches the transcript, identifies tools with search-grounded AI,
    synthesizes an icon per tool and archives the result.

    Args:
        url: YouTube video URL (watch, youtu.be, embed, shorts, v/ links).
    """
    svc = _get_service()
    if not svc.reset():
        return {"error": f"An analysis is already running ({svc.phase.value})."}
    result = await svc.analyze(url)
    if result is None:
        return {"error": svc.error}
    return _result_summary(result)


@mcp.tool(annotations={"readOnlyHint": True})
def list_results() -> list[dict]:
    """List all archived analyses, most recent first.

    Tool details are not included — use get_result for the full record.
    """
    return [_result_summary(r) for r in _get_service().list_results()]


@mcp.tool(annotations={"readOnlyHint": True})
def get_result(result_id: str) -> dict:
    """Get the full archived analysis for a video.

    Args:
        result_id: The YouTube video ID (11-character string).
    """
    try:
        result = _get_service().get_result(result_id)
        return result.model_dump(mode="json", by_alias=True, exclude_none=True)
    except ResultNotFoundError as e:
        return {"error": str(e)}


@mcp.tool(annotations={"destructiveHint": True})
def delete_result(result_id: str, confirm: bool = False) -> dict:
    """Remove an analysis from the archive. This cannot be undone.

    Args:
        result_id: The YouTube video ID to remove.
        confirm: Must be true for the deletion to happen.
    """
    try:
        deleted = _get_service().delete_result(result_id, confirm=lambda _id: confirm)
    except ResultNotFoundError as e:
        return {"error": str(e)}
    if not deleted:
        return {"status": "cancelled", "result_id": result_id}
    return {"status": "removed", "result_id": result_id}


@mcp.tool(annotations={"readOnlyHint": True})
def archive_stats() -> dict:
    """Aggregate statistics across the archive: unique tools, categories, top mentions."""
    return _get_service().stats().model_dump(mode="json", by_alias=True, exclude_none=True)


@mcp.tool(annotations={"readOnlyHint": True})
def export_result(result_id: str | None = None, fmt: str = "json") -> dict:
    """Export one analysis, or the whole archive, as JSON or Markdown.

    Args:
        result_id: Video ID to export. If omitted, exports the whole archive (JSON only).
        fmt: "json" or "markdown".
    """
    svc = _get_service()
    try:
        if fmt == "markdown":
            if not result_id:
                return {"error": "Markdown export needs a result_id."}
            content = svc.export_markdown(result_id)
        elif fmt == "json":
            content = svc.export_json(result_id)
        else:
            return {"error": f"Unknown format: {fmt}"}
    except ResultNotFoundError as e:
        return {"error": str(e)}
    return {"result_id": result_id, "format": fmt, "content": content}


def _result_summary(result: ExtractionResult) -> dict:
    """Create a concise summary dict for tool responses (excludes tool details)."""
    video = result.video
    return {
        "result_id": result.id,
        "title": video.title if video else None,
        "author": video.author if video else None,
        "url": result.url,
        "total_tools": result.stats.total_tools,
        "tools": [t.name for t in result.tools],
        "grounding_urls": len(result.grounding_urls),
        "timestamp": result.timestamp,
    }
