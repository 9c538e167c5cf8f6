"""Domain models for stackscan.

Python attributes are snake_case; the JSON form (AI responses, the
persisted archive and exports) uses camelCase aliases.
"""

import math
import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Derive the stable dedup key for a tool name.

    "Claude Code" -> "claude-code", "Node.js" -> "node-js". Names with no
    ASCII alphanumerics fall back to their stripped lowercase form.
    """
    lowered = name.strip().lower()
    return _SLUG_RE.sub("-", lowered).strip("-") or lowered


def _as_number(value) -> float | None:
    """Read a numeric AI field; anything that is not a finite number yields None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return value


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TranscriptChunk(CamelModel):
    """A single timestamped fragment of a video transcript."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    text: str
    offset: float | None = None  # as reported by the transcript service
    duration: float | None = None
    lang: str | None = None


class TranscriptMetadata(CamelModel):
    """Optional video metadata returned alongside a transcript."""

    title: str | None = None
    author: str | None = None
    thumbnail_url: str | None = None


class TranscriptPayload(CamelModel):
    """Decoded transcript service response."""

    chunks: list[TranscriptChunk] = Field(default_factory=list)
    metadata: TranscriptMetadata | None = None


class Evidence(CamelModel):
    """A verbatim quote supporting a tool mention."""

    offset_ms: float | None = None
    duration_ms: float | None = None
    quote: str = ""
    chunk_indexes: list[int] = Field(default_factory=list)

    @field_validator("offset_ms", "duration_ms", mode="before")
    @classmethod
    def _coerce_time(cls, value):
        return _as_number(value)

    @field_validator("quote", mode="before")
    @classmethod
    def _coerce_quote(cls, value):
        return value if isinstance(value, str) else ""

    @field_validator("chunk_indexes", mode="before")
    @classmethod
    def _coerce_indexes(cls, value):
        if not isinstance(value, list):
            return []
        numbers = (_as_number(v) for v in value)
        return [int(n) for n in numbers if n is not None]


class ToolMention(CamelModel):
    """One software tool identified in a transcript."""

    name: str
    normalized: str = ""
    category: str = "other"
    mentions_count: int = 1
    confidence: float = 0.0
    evidence: list[Evidence] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
    official_url: str | None = None
    github_url: str | None = None
    ai_thumbnail: str | None = None  # data URI, pruned from older archive entries
    timestamp_label: str | None = None
    timestamp_offset: float | None = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("tool name must not be blank")
        return value

    @field_validator("normalized", mode="before")
    @classmethod
    def _coerce_normalized(cls, value):
        return value if isinstance(value, str) else ""

    @field_validator("category", mode="before")
    @classmethod
    def _lower_category(cls, value):
        if not isinstance(value, str) or not value.strip():
            return "other"
        return value.strip().lower()

    @field_validator("mentions_count", mode="before")
    @classmethod
    def _coerce_mentions(cls, value):
        number = _as_number(value)
        if number is None:
            return 1
        return max(round(number), 0)

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value):
        number = _as_number(value)
        if number is None:
            return 0.0
        return min(max(number, 0.0), 1.0)

    @field_validator("notes", mode="before")
    @classmethod
    def _coerce_notes(cls, value):
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return []
        return [note for note in value if isinstance(note, str) and note.strip()]

    @field_validator("evidence", mode="before")
    @classmethod
    def _coerce_evidence(cls, value):
        if not isinstance(value, list):
            return []
        return [e for e in value if isinstance(e, (dict, Evidence))]

    @field_validator("official_url", "github_url", "ai_thumbnail", "timestamp_label", mode="before")
    @classmethod
    def _optional_text(cls, value):
        return value if isinstance(value, str) and value else None

    @field_validator("timestamp_offset", mode="before")
    @classmethod
    def _coerce_offset(cls, value):
        return _as_number(value)

    @model_validator(mode="after")
    def _fill_normalized(self) -> "ToolMention":
        key = (self.normalized or "").strip().lower()
        self.normalized = key or slugify(self.name)
        return self

    @property
    def dedup_key(self) -> str:
        """Key used to collapse mentions of the same tool across results."""
        return self.normalized or self.name.lower()


class QualityFlag(CamelModel):
    """A data-quality note emitted by the extraction model."""

    type: str = "info"
    severity: Literal["info", "warning", "error"] = "info"
    message: str = ""
    items: list[str] = Field(default_factory=list)

    @field_validator("severity", mode="before")
    @classmethod
    def _known_severity(cls, value):
        return value if value in ("info", "warning", "error") else "info"


class SourceInfo(CamelModel):
    """Where the extraction came from, as reported by the model."""

    type: str = "transcript"
    note: str = ""


class VideoInfo(CamelModel):
    """Display metadata for the analyzed video."""

    title: str = ""
    author: str = ""
    thumbnail_url: str = ""


class RunStats(CamelModel):
    """Counters stamped on a completed analysis."""

    total_tools: int = 0
    processing_time_ms: int = 0


class ExtractionResult(CamelModel):
    """One completed analysis. ``id`` is the source video ID and the archive key."""

    id: str
    video: VideoInfo | None = None
    source: SourceInfo | None = None
    tools: list[ToolMention] = Field(default_factory=list)
    grounding_urls: list[str] = Field(default_factory=list)
    quality_flags: list[QualityFlag] = Field(default_factory=list)
    timestamp: int = 0  # epoch milliseconds
    stats: RunStats = Field(default_factory=RunStats)

    @computed_field
    @property
    def url(self) -> str:
        """Full YouTube URL derived from the video ID."""
        return f"https://www.youtube.com/watch?v={self.id}"


class AggregateStats(CamelModel):
    """Statistics derived from the whole archive."""

    total_unique_tools: int = 0
    categories: dict[str, int] = Field(default_factory=dict)
    most_mentioned: list[ToolMention] = Field(default_factory=list)
