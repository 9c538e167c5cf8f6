"""Archive of past extraction results, persisted with quota-aware pruning."""

import json
import logging
from typing import Callable, Iterable

from pydantic import ValidationError as PydanticValidationError

from stackscan.config import settings
from stackscan.errors import StorageError, StorageQuotaExceededError
from stackscan.models import AggregateStats, ExtractionResult, ToolMention
from stackscan.storage.repository import KeyValueStore

logger = logging.getLogger(__name__)

ARCHIVE_KEY = "stackscan_archive_v2"
LEGACY_ARCHIVE_KEY = "stackscan_archive"

TOP_MENTIONED = 5

# Share of entries kept when a write hits the storage quota
_AGGRESSIVE_KEEP_RATIO = 0.7


class ArchiveStore:
    """Most-recent-first collection of results, at most one per video ID.

    Every mutation rewrites the whole archive to the key-value store.
    Persisting never raises: storage failures are logged and the
    in-memory archive stays as it is.
    """

    def __init__(
        self,
        store: KeyValueStore,
        max_items: int | None = None,
        keep_thumbnails: int | None = None,
    ) -> None:
        self._store = store
        self._max_items = max_items if max_items is not None else settings.max_archive_items
        self._keep_thumbnails = (
            keep_thumbnails if keep_thumbnails is not None else settings.keep_thumbnails_count
        )
        self._items: list[ExtractionResult] = []
        self._legacy_cleared = False

    @property
    def items(self) -> list[ExtractionResult]:
        """Snapshot of the archive, most recent first."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def get(self, result_id: str) -> ExtractionResult | None:
        return next((r for r in self._items if r.id == result_id), None)

    def load(self) -> list[ExtractionResult]:
        """Load the persisted archive, falling back to the legacy key.

        Unreadable or malformed data yields an empty archive; entries
        without a truthy ``id`` or a list ``tools`` are dropped.
        """
        raw = None
        for key in (ARCHIVE_KEY, LEGACY_ARCHIVE_KEY):
            try:
                raw = self._store.get(key)
            except StorageError as e:
                logger.warning("Could not read archive key %s: %s", key, e)
                raw = None
            if raw:
                break

        self._items = self._decode(raw) if raw else []
        logger.info("Loaded %d archived result(s)", len(self._items))
        return self.items

    def upsert(self, result: ExtractionResult) -> list[ExtractionResult]:
        """Insert ``result`` at the front, replacing any entry with the same id."""
        remaining = [r for r in self._items if r.id != result.id]
        self._items = [result, *remaining][: self._max_items]
        self.persist()
        return self.items

    def delete(self, result_id: str, confirm: Callable[[str], bool]) -> list[ExtractionResult]:
        """Remove a result once ``confirm(result_id)`` agrees. Irreversible.

        A declined confirmation leaves the archive and storage untouched.
        """
        if not confirm(result_id):
            logger.info("Deletion of %s cancelled", result_id)
            return self.items
        self._items = [r for r in self._items if r.id != result_id]
        self.persist()
        logger.info("Deleted archived result %s", result_id)
        return self.items

    def persist(self) -> bool:
        """Write the archive, shrinking it once if storage is over quota.

        The first successful write also removes the legacy key.

        Returns:
            True if a write succeeded.
        """
        self._items = prune_thumbnails(self._items, keep=self._keep_thumbnails)
        try:
            self._store.set(ARCHIVE_KEY, _serialize(self._items))
            self._clear_legacy()
            return True
        except StorageQuotaExceededError as e:
            logger.warning("Archive exceeds storage quota, retrying with aggressive pruning: %s", e)
        except StorageError as e:
            logger.error("Failed to persist archive: %s", e)
            return False

        keep = max(1, int(len(self._items) * _AGGRESSIVE_KEEP_RATIO)) if self._items else 0
        shrunk = prune_thumbnails(self._items[:keep], keep=0)
        try:
            self._store.set(ARCHIVE_KEY, _serialize(shrunk))
        except StorageError as e:
            logger.error("Failed to persist archive after pruning: %s", e)
            return False
        logger.info("Persisted %d of %d result(s) after pruning", len(shrunk), len(self._items))
        self._clear_legacy()
        return True

    def _clear_legacy(self) -> None:
        if self._legacy_cleared:
            return
        try:
            self._store.delete(LEGACY_ARCHIVE_KEY)
        except StorageError as e:
            logger.warning("Could not remove legacy archive key: %s", e)
            return
        self._legacy_cleared = True

    def _decode(self, raw: str) -> list[ExtractionResult]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Discarding unreadable archive: %s", e)
            return []
        if not isinstance(data, list):
            logger.warning("Discarding archive with unexpected shape: %s", type(data).__name__)
            return []

        results: list[ExtractionResult] = []
        seen: set[str] = set()
        for entry in data:
            if not isinstance(entry, dict):
                continue
            if not entry.get("id") or not isinstance(entry.get("tools"), list):
                continue
            try:
                result = ExtractionResult.model_validate(entry)
            except PydanticValidationError as e:
                logger.warning("Skipping invalid archive entry %s: %s", entry.get("id"), e.errors()[:1])
                continue
            if result.id in seen:
                continue
            seen.add(result.id)
            results.append(result)
        return results[: self._max_items]


def prune_thumbnails(results: list[ExtractionResult], keep: int) -> list[ExtractionResult]:
    """Clear ``aiThumbnail`` on every tool of entries at index >= ``keep``."""
    pruned = list(results[:keep])
    for result in results[keep:]:
        if any(t.ai_thumbnail for t in result.tools):
            result = result.model_copy(
                update={"tools": [t.model_copy(update={"ai_thumbnail": None}) for t in result.tools]}
            )
        pruned.append(result)
    return pruned


def compute_stats(results: Iterable[ExtractionResult], top: int = TOP_MENTIONED) -> AggregateStats:
    """Aggregate unique tools across results.

    Tools sharing a dedup key collapse to the variant with the highest
    ``mentionsCount``; the first one seen wins ties.
    """
    unique: dict[str, ToolMention] = {}
    for result in results:
        for tool in result.tools:
            key = tool.dedup_key
            current = unique.get(key)
            if current is None or tool.mentions_count > current.mentions_count:
                unique[key] = tool

    categories: dict[str, int] = {}
    for tool in unique.values():
        categories[tool.category] = categories.get(tool.category, 0) + 1

    most_mentioned = sorted(unique.values(), key=lambda t: t.mentions_count, reverse=True)[:top]
    return AggregateStats(
        total_unique_tools=len(unique),
        categories=categories,
        most_mentioned=most_mentioned,
    )


def _serialize(results: list[ExtractionResult]) -> str:
    return json.dumps(
        [r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in results]
    )
