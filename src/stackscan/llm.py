"""LLM integration via LiteLLM for extraction and image synthesis."""

import logging
import os
from dataclasses import dataclass, field
from typing import Any

import litellm

from stackscan.config import settings
from stackscan.errors import LLMError

logger = logging.getLogger(__name__)

# Suppress LiteLLM's verbose logging
litellm.suppress_debug_info = True


@dataclass
class Completion:
    """Text completion plus the provider side-channel we care about."""

    text: str
    finish_reason: str | None = None
    grounding_chunks: list[Any] = field(default_factory=list)


class LLMClient:
    """Thin wrapper over LiteLLM for the Gemini text and image models.

    The API key is resolved from the constructor, settings, then the
    GEMINI_API_KEY / GOOGLE_API_KEY environment variables.
    """

    _ENV_KEYS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")

    def __init__(
        self,
        model: str | None = None,
        image_model: str | None = None,
        api_key: str | None = None,
    ) -> None:
        self._model = model or settings.extraction_model
        self._image_model = image_model or settings.visual_model
        self._api_key = api_key

    @property
    def model(self) -> str:
        return self._model

    @property
    def image_model(self) -> str:
        return self._image_model

    @property
    def available(self) -> bool:
        """Check if a Gemini key is configured."""
        return self._resolve_key() is not None

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.2,
        tools: list[dict] | None = None,
        max_tokens: int = 8192,
    ) -> Completion:
        """Send a completion request to the configured model.

        Raises:
            LLMError: If no key is configured or the request fails.
        """
        api_key = self._require_key()
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "api_key": api_key,
        }
        if tools:
            kwargs["tools"] = tools

        try:
            response = await litellm.acompletion(**kwargs)
        except Exception as e:
            raise LLMError(f"LLM request failed ({self._model}): {e}") from e

        choices = getattr(response, "choices", None)
        if not choices:
            raise LLMError(f"LLM returned no choices ({self._model})")
        choice = choices[0]
        return Completion(
            text=(choice.message.content or "").strip(),
            finish_reason=choice.finish_reason,
            grounding_chunks=_grounding_chunks(response),
        )

    async def generate_image(self, prompt: str) -> Any:
        """Request one image and return the raw LiteLLM image response.

        Raises:
            LLMError: If no key is configured or the request fails.
        """
        api_key = self._require_key()
        try:
            return await litellm.aimage_generation(
                model=self._image_model,
                prompt=prompt,
                n=1,
                api_key=api_key,
            )
        except Exception as e:
            raise LLMError(f"Image request failed ({self._image_model}): {e}") from e

    def _require_key(self) -> str:
        api_key = self._resolve_key()
        if api_key is None:
            raise LLMError(
                "No Gemini API key configured. Set STACKSCAN_GEMINI_API_KEY or one of: "
                + ", ".join(self._ENV_KEYS)
            )
        return api_key

    def _resolve_key(self) -> str | None:
        if self._api_key:
            return self._api_key
        if settings.gemini_api_key:
            return settings.gemini_api_key
        for env_key in self._ENV_KEYS:
            if os.environ.get(env_key):
                return os.environ[env_key]
        return None


def _grounding_chunks(response: Any) -> list[Any]:
    """Grounding citations of the first candidate, if the provider sent any."""
    metadata = getattr(response, "vertex_ai_grounding_metadata", None)
    if metadata is None:
        hidden = getattr(response, "_hidden_params", None)
        if isinstance(hidden, dict):
            metadata = hidden.get("vertex_ai_grounding_metadata")
    if isinstance(metadata, list):
        metadata = metadata[0] if metadata else None
    if not isinstance(metadata, dict):
        return []
    chunks = metadata.get("groundingChunks")
    return chunks if isinstance(chunks, list) else []
