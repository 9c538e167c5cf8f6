# tests/test_visuals.py
"""Tests for AI visual synthesis."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from conftest import image_response
from stackscan.llm import LLMClient
from stackscan.visuals import VisualSynthesisClient, first_inline_image


class TestSynthesize:
    @pytest.mark.asyncio()
    async def test_returns_data_uri(self, mock_llm):
        uri = await VisualSynthesisClient(mock_llm, enabled=True).synthesize("Ghostty", "devtools")
        assert uri == "data:image/png;base64,iVBORw0KGgo="

    @pytest.mark.asyncio()
    async def test_prompt_names_tool_and_category(self, mock_llm):
        await VisualSynthesisClient(mock_llm, enabled=True).synthesize("Ghostty", "devtools")
        prompt = mock_llm._mock_image.call_args.kwargs["prompt"]
        assert '"Ghostty"' in prompt
        assert '"devtools"' in prompt
        assert "isometric" in prompt

    @pytest.mark.asyncio()
    async def test_no_image_returns_none(self, mock_llm):
        mock_llm._mock_image.return_value = image_response(None)
        assert await VisualSynthesisClient(mock_llm, enabled=True).synthesize("X", "cli") is None

    @pytest.mark.asyncio()
    async def test_failure_returns_none(self, mock_llm):
        mock_llm._mock_image.side_effect = RuntimeError("model overloaded")
        assert await VisualSynthesisClient(mock_llm, enabled=True).synthesize("X", "cli") is None

    @pytest.mark.asyncio()
    async def test_disabled_skips_request(self, mock_llm):
        client = VisualSynthesisClient(mock_llm, enabled=False)
        assert client.enabled is False
        assert await client.synthesize("X", "cli") is None
        mock_llm._mock_image.assert_not_called()

    def test_disabled_without_key(self):
        with patch.dict("os.environ", {}, clear=True):
            assert VisualSynthesisClient(LLMClient(), enabled=True).enabled is False


class TestFirstInlineImage:
    def test_skips_entries_without_bytes(self):
        response = {"data": [{"url": "https://x/y.png"}, {"b64_json": "QUJD"}]}
        assert first_inline_image(response) == "data:image/png;base64,QUJD"

    def test_object_response(self):
        response = SimpleNamespace(data=[SimpleNamespace(b64_json="QUJD")])
        assert first_inline_image(response) == "data:image/png;base64,QUJD"

    def test_empty(self):
        assert first_inline_image({"data": []}) is None
        assert first_inline_image(None) is None
