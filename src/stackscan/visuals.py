"""Visual synthesis — one AI-generated icon per extracted tool."""

import logging
from typing import Any

from stackscan.config import settings
from stackscan.llm import LLMClient

logger = logging.getLogger(__name__)


class VisualSynthesisClient:
    """Generates an icon image for a tool.

    Best-effort: every failure degrades to ``None`` so a bad image
    never costs the caller its extraction.
    """

    def __init__(self, llm: LLMClient, enabled: bool | None = None) -> None:
        self._llm = llm
        self._enabled = enabled if enabled is not None else settings.generate_visuals

    @property
    def enabled(self) -> bool:
        return self._enabled and self._llm.available

    async def synthesize(self, tool_name: str, category: str) -> str | None:
        """Return a ``data:image/png;base64,...`` URI, or None if no image came back."""
        if not self.enabled:
            return None
        try:
            response = await self._llm.generate_image(self._build_prompt(tool_name, category))
            return first_inline_image(response)
        except Exception as e:
            logger.warning("Visual synthesis skipped for %s: %s", tool_name, e)
            return None

    @staticmethod
    def _build_prompt(tool_name: str, category: str) -> str:
        return (
            "Professional high-end 3D abstract isometric product icon for a software "
            f'project named "{tool_name or "Technology"}" in category "{category or "General"}". '
            "Aesthetic: Minimalist, sleek, silver and midnight blue, glass textures, "
            "soft volumetric light, white clean studio background, 8k resolution."
        )


def first_inline_image(response: Any) -> str | None:
    """Scan an image response for the first entry carrying inline base64 bytes."""
    entries = _get(response, "data") or []
    for entry in entries:
        b64 = _get(entry, "b64_json")
        if isinstance(b64, str) and b64:
            return f"data:image/png;base64,{b64}"
    return None


def _get(obj: Any, name: str) -> Any:
    """Read a field from a LiteLLM object or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)
