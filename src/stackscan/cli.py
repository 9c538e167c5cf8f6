"""CLI interface — thin wrapper over StackScanService and FastMCP server."""

import asyncio
import logging
from pathlib import Path

import typer

from stackscan.archive import ArchiveStore
from stackscan.config import settings
from stackscan.errors import AmbiguousResultError, ResultNotFoundError
from stackscan.export import export_filename
from stackscan.llm import LLMClient
from stackscan.models import ExtractionResult
from stackscan.service import AnalysisPhase, StackScanService
from stackscan.storage.sqlite import SQLiteKeyValueStore
from stackscan.visuals import VisualSynthesisClient


app = typer.Typer(
    name="stackscan",
    help="Extract the software stack mentioned in any YouTube video.",
    no_args_is_help=True,
)

_PHASE_LABELS = {
    AnalysisPhase.FETCHING_TRANSCRIPT: "📜 Fetching transcript...",
    AnalysisPhase.AI_EXTRACTION: "🔎 Extracting tools with search grounding...",
    AnalysisPhase.AI_VISUAL_GEN: "🎨 Synthesizing tool visuals...",
}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Show debug logging."),
) -> None:
    """Extract the software stack mentioned in any YouTube video."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
    )


def _get_service(on_phase=None, visuals: bool = True) -> StackScanService:
    """Create a service instance with default dependencies."""
    settings.ensure_dirs()
    llm = LLMClient()
    return StackScanService(
        archive=ArchiveStore(SQLiteKeyValueStore(quota_chars=settings.storage_quota_chars)),
        llm_client=llm,
        visuals=VisualSynthesisClient(llm=llm, enabled=visuals and settings.generate_visuals),
        on_phase=on_phase,
    )


def _echo_phase(phase: AnalysisPhase) -> None:
    label = _PHASE_LABELS.get(phase)
    if label:
        typer.echo(label)


def _resolve_or_exit(svc: StackScanService, query: str) -> ExtractionResult:
    """Resolve a result from human-friendly input or exit with error."""
    try:
        return svc.resolve_result(query)
    except ResultNotFoundError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=1)
    except AmbiguousResultError as e:
        typer.echo(f"⚠️  {e}", err=True)
        raise typer.Exit(code=1)


def _write_or_echo(rendered: str, output: str | None) -> None:
    if output:
        Path(output).write_text(rendered, encoding="utf-8")
        typer.echo(f"✅ Saved: {output}")
    else:
        typer.echo(rendered)


@app.command()
def analyze(
    url: str = typer.Argument(..., help="YouTube video URL to analyze."),
    no_visuals: bool = typer.Option(False, "--no-visuals", help="Skip AI icon synthesis."),
) -> None:
    """Extract the tools mentioned in a video and archive the result."""
    svc = _get_service(on_phase=_echo_phase, visuals=not no_visuals)

    async def _run() -> ExtractionResult | None:
        try:
            return await svc.analyze(url)
        finally:
            await svc.aclose()

    result = asyncio.run(_run())
    if result is None:
        typer.echo(f"❌ {svc.error}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"✅ {result.video.title} — {result.video.author}")
    typer.echo(f"   ID:       {result.id}")
    typer.echo(f"   Tools:    {result.stats.total_tools}")
    typer.echo(f"   Time:     {result.stats.processing_time_ms / 1000:.1f}s")
    for tool in result.tools:
        icon = " 🖼️" if tool.ai_thumbnail else ""
        typer.echo(f"   • {tool.name} ({tool.category}) ×{tool.mentions_count}{icon}")
    if result.grounding_urls:
        typer.echo(f"   Sources:  {len(result.grounding_urls)} grounding URL(s)")


@app.command(name="list")
def list_results() -> None:
    """List all archived analyses."""
    svc = _get_service()
    results = svc.list_results()
    if not results:
        typer.echo("Archive is empty. Use 'stackscan analyze <url>' to analyze a video.")
        return
    for i, r in enumerate(results, 1):
        title = r.video.title if r.video else ""
        typer.echo(f"  {i}. {r.id}  {r.stats.total_tools:>3} tools  {title}")


@app.command()
def show(query: str = typer.Argument(..., help="Video ID, index number, or search text.")) -> None:
    """Show the full details of an archived analysis."""
    svc = _get_service()
    result = _resolve_or_exit(svc, query)
    if result.video:
        typer.echo(f"Title:       {result.video.title}")
        typer.echo(f"Author:      {result.video.author}")
        typer.echo(f"Thumbnail:   {result.video.thumbnail_url}")
    typer.echo(f"URL:         {result.url}")
    typer.echo(f"Tools:       {result.stats.total_tools}")
    typer.echo(f"Took:        {result.stats.processing_time_ms} ms")
    for tool in result.tools:
        typer.echo(f"\n  {tool.name} [{tool.category}]  mentions={tool.mentions_count}  "
                   f"confidence={tool.confidence:.2f}")
        for note in tool.notes:
            typer.echo(f"    {note}")
        if tool.official_url:
            typer.echo(f"    Official: {tool.official_url}")
        if tool.github_url:
            typer.echo(f"    GitHub:   {tool.github_url}")
    if result.grounding_urls:
        typer.echo("\nSources:")
        for uri in result.grounding_urls:
            typer.echo(f"  {uri}")


@app.command()
def remove(
    query: str = typer.Argument(..., help="Video ID, index number, or search text."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete an analysis from the archive."""
    svc = _get_service()
    result = _resolve_or_exit(svc, query)
    title = result.video.title if result.video else result.id

    def _confirm(result_id: str) -> bool:
        return yes or typer.confirm(f"Delete '{title}' ({result_id})? This cannot be undone.")

    if svc.delete_result(result.id, confirm=_confirm):
        typer.echo(f"🗑️  Removed: {title} ({result.id})")
    else:
        typer.echo("Cancelled.")


@app.command()
def stats() -> None:
    """Show aggregate statistics across the archive."""
    svc = _get_service()
    agg = svc.stats()
    typer.echo(f"Unique tools: {agg.total_unique_tools}")
    if agg.categories:
        typer.echo("\nCategories:")
        for category, count in sorted(agg.categories.items(), key=lambda kv: -kv[1]):
            typer.echo(f"  {category:<18s} {count}")
    if agg.most_mentioned:
        typer.echo("\nMost mentioned:")
        for i, tool in enumerate(agg.most_mentioned, 1):
            typer.echo(f"  {i}. {tool.name} ({tool.mentions_count})")


@app.command()
def export(
    query: str | None = typer.Argument(None, help="Result to export; omit for the whole archive."),
    fmt: str = typer.Option("json", "--format", help="Output format: json or markdown."),
    output: str | None = typer.Option(None, "--output", "-o", help="Save to file."),
    save: bool = typer.Option(False, "--save", help="Save under the default file name."),
) -> None:
    """Export one analysis or the whole archive."""
    svc = _get_service()
    result_id = _resolve_or_exit(svc, query).id if query else None
    if fmt == "markdown":
        if result_id is None:
            typer.echo("❌ Markdown export needs a single result.", err=True)
            raise typer.Exit(code=1)
        rendered = svc.export_markdown(result_id)
    elif fmt == "json":
        rendered = svc.export_json(result_id)
    else:
        typer.echo(f"❌ Unknown format: {fmt}", err=True)
        raise typer.Exit(code=1)
    if save and not output:
        output = export_filename(result_id, fmt)
    _write_or_echo(rendered, output)


@app.command()
def serve(
    stdio: bool = typer.Option(False, "--stdio", help="Use stdio transport instead of HTTP."),
    host: str = typer.Option(settings.host, "--host", help="Host to bind to."),
    port: int = typer.Option(settings.port, "--port", help="Port to bind to."),
) -> None:
    """Start the stackscan MCP server."""
    from stackscan.server import mcp

    if stdio:
        typer.echo("Starting stackscan MCP server (stdio)...", err=True)
        mcp.run(transport="stdio")
    else:
        typer.echo(f"Starting stackscan MCP server on http://{host}:{port}/mcp")
        mcp.run(transport="streamable-http", host=host, port=port)
