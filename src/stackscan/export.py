"""Export helpers — JSON and Markdown renderings of archived results."""

import json
from typing import Sequence

from stackscan.models import ExtractionResult


def to_json(data: ExtractionResult | Sequence[ExtractionResult]) -> str:
    """Render one result or a whole archive as indented JSON."""
    if isinstance(data, ExtractionResult):
        payload = data.model_dump(mode="json", by_alias=True, exclude_none=True)
    else:
        payload = [r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in data]
    return json.dumps(payload, indent=2, ensure_ascii=False)


def to_markdown(result: ExtractionResult) -> str:
    """Render a result as a Markdown bullet list: ``- name (category): note``."""
    lines = []
    for tool in result.tools:
        note = tool.notes[0] if tool.notes else ""
        line = f"- {tool.name} ({tool.category})"
        lines.append(f"{line}: {note}" if note else line)
    return "\n".join(lines)


def export_filename(result_id: str | None = None, fmt: str = "json") -> str:
    """Download file name for a single result or the full archive."""
    ext = "md" if fmt == "markdown" else "json"
    if result_id:
        return f"stackscan_extract_{result_id}.{ext}"
    return f"stackscan_archive.{ext}"
