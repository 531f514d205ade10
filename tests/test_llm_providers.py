"""
Tests for streaming LLM providers.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from strata.core.errors import GenerationError, ProviderConfigurationError
from strata.core.llm_providers import (
    GeminiProvider,
    LLMProviderFactory,
    OllamaProvider,
)
from strata.core.prompts import RESPONSE_SCHEMA


def ollama_transport(lines, status_code=200):
    body = "".join(json.dumps(line) + "\n" for line in lines)

    def handler(request):
        assert request.url.path == "/api/generate"
        payload = json.loads(request.content)
        assert payload["stream"] is True
        assert payload["format"] == "json"
        return httpx.Response(status_code, text=body)

    return httpx.MockTransport(handler)


class FakeAsyncStream:
    def __init__(self, chunks):
        self.chunks = chunks

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            yield chunk


class TestOllamaProvider:
    """Test the Ollama streaming client."""

    LINES = [
        {"response": '{"goal":', "done": False},
        {"response": "", "done": False},
        {"response": '"Piano"}', "done": True},
    ]

    def test_sync_stream(self):
        provider = OllamaProvider(transport=ollama_transport(self.LINES))
        assert list(provider.stream_response_sync("prompt")) == ['{"goal":', '"Piano"}']
        provider.close()

    @pytest.mark.asyncio
    async def test_async_stream(self):
        provider = OllamaProvider(transport=ollama_transport(self.LINES))
        fragments = [f async for f in provider.stream_response("prompt")]
        assert "".join(fragments) == '{"goal":"Piano"}'

    def test_error_line_raises(self):
        provider = OllamaProvider(transport=ollama_transport([{"error": "model not found"}]))
        with pytest.raises(GenerationError, match="model not found"):
            list(provider.stream_response_sync("prompt"))

    def test_http_status_is_wrapped(self):
        provider = OllamaProvider(transport=ollama_transport([], status_code=500))
        with pytest.raises(GenerationError):
            list(provider.stream_response_sync("prompt"))

    @pytest.mark.asyncio
    async def test_connection_error_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        provider = OllamaProvider(transport=httpx.MockTransport(handler))
        with pytest.raises(GenerationError):
            async for _ in provider.stream_response("prompt"):
                pass

    def test_malformed_lines_are_skipped(self):
        assert OllamaProvider._fragment_from_line("not json") == ""
        assert OllamaProvider._fragment_from_line("") == ""


class TestGeminiProvider:
    """Test the Gemini streaming client."""

    def test_missing_key_raises_on_use(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        provider = GeminiProvider(api_key=None)
        assert provider.client is None
        with pytest.raises(ProviderConfigurationError):
            list(provider.stream_response_sync("prompt"))

    @pytest.mark.asyncio
    async def test_missing_key_raises_on_async_use(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        provider = GeminiProvider(api_key=None)
        with pytest.raises(ProviderConfigurationError):
            async for _ in provider.stream_response("prompt"):
                pass

    def test_sync_stream(self):
        with patch("strata.core.llm_providers.genai") as genai:
            model = genai.GenerativeModel.return_value
            model.generate_content.return_value = [
                SimpleNamespace(text='{"goal":'),
                SimpleNamespace(text=""),
                SimpleNamespace(text='"x"}'),
            ]
            provider = GeminiProvider(api_key="key")
            fragments = list(provider.stream_response_sync("prompt"))

        genai.configure.assert_called_once_with(api_key="key")
        assert fragments == ['{"goal":', '"x"}']
        kwargs = model.generate_content.call_args.kwargs
        assert kwargs["stream"] is True
        config = kwargs["generation_config"]
        assert config["response_mime_type"] == "application/json"
        assert config["response_schema"] == RESPONSE_SCHEMA

    def test_response_schema_constrains_plan_shape(self):
        assert RESPONSE_SCHEMA["required"] == ["goal", "summary", "motivationalQuote", "phases"]
        step = RESPONSE_SCHEMA["properties"]["phases"]["items"]["properties"]["steps"]["items"]
        assert step["properties"]["difficulty"]["enum"] == ["Easy", "Medium", "Hard"]
        assert "isBreakable" in step["required"]

    @pytest.mark.asyncio
    async def test_async_stream(self):
        with patch("strata.core.llm_providers.genai") as genai:
            model = genai.GenerativeModel.return_value
            model.generate_content_async = AsyncMock(
                return_value=FakeAsyncStream([SimpleNamespace(text="{}")])
            )
            provider = GeminiProvider(api_key="key")
            fragments = [f async for f in provider.stream_response("prompt")]

        assert fragments == ["{}"]

    def test_sdk_errors_are_wrapped(self):
        with patch("strata.core.llm_providers.genai") as genai:
            genai.GenerativeModel.return_value.generate_content.side_effect = RuntimeError("quota")
            provider = GeminiProvider(api_key="key")
            with pytest.raises(GenerationError, match="quota"):
                list(provider.stream_response_sync("prompt"))


class TestLLMProviderFactory:
    """Test provider selection."""

    def test_create_ollama(self):
        provider = LLMProviderFactory.create_provider(
            "ollama", "llama3.2", base_url="http://ollama:11434/"
        )
        assert isinstance(provider, OllamaProvider)
        assert provider.base_url == "http://ollama:11434"

    def test_create_gemini(self):
        with patch("strata.core.llm_providers.genai"):
            provider = LLMProviderFactory.create_provider("Gemini", "gemini-2.0-flash", api_key="k")
        assert isinstance(provider, GeminiProvider)
        assert provider.model == "gemini-2.0-flash"

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            LLMProviderFactory.create_provider("openai", "gpt")

    def test_from_config(self):
        cfg = MagicMock(
            LLM_PROVIDER="ollama", OLLAMA_MODEL="qwen", OLLAMA_URL="http://o:1"
        )
        provider = LLMProviderFactory.from_config(cfg)
        assert isinstance(provider, OllamaProvider)
        assert provider.model == "qwen"
        assert provider.base_url == "http://o:1"
