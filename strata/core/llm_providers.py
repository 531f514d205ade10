"""Streaming LLM provider implementations for Strata."""

import copy
import json
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterator

import google.generativeai as genai
import httpx

from .errors import GenerationError, ProviderConfigurationError
from .prompts import RESPONSE_SCHEMA

logger = logging.getLogger(__name__)

GENERATION_OPTIONS = {
    "temperature": 0.4,
    "top_p": 0.9,
}


class LLMProvider(ABC):
    """Abstract base class for streaming LLM providers."""

    @abstractmethod
    def stream_response(self, prompt: str) -> AsyncIterator[str]:
        """Yield text fragments of the response as they arrive."""
        pass

    @abstractmethod
    def stream_response_sync(self, prompt: str) -> Iterator[str]:
        """Yield text fragments of the response (synchronous version)."""
        pass

    @abstractmethod
    def close(self):
        """Close any open connections."""
        pass


class OllamaProvider(LLMProvider):
    """Ollama LLM provider for local models."""

    def __init__(
        self,
        model: str = "llama3.2",
        base_url: str = "http://localhost:11434",
        timeout: float = 300.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.client = httpx.Client(timeout=timeout, transport=transport)

    def _payload(self, prompt: str) -> dict:
        return {
            "model": self.model,
            "prompt": prompt,
            "stream": True,
            "format": "json",
            "options": {**GENERATION_OPTIONS, "num_predict": 8192},
        }

    @staticmethod
    def _fragment_from_line(line: str) -> str:
        if not line:
            return ""
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            logger.warning("Skipping malformed Ollama stream line: %r", line[:80])
            return ""
        if data.get("error"):
            raise GenerationError(f"Ollama error: {data['error']}")
        return data.get("response", "")

    async def stream_response(self, prompt: str) -> AsyncIterator[str]:
        """Stream a response from Ollama's generate API."""
        logger.info("Starting Ollama streaming call (model=%s)", self.model)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                async with client.stream(
                    "POST",
                    f"{self.base_url}/api/generate",
                    json=self._payload(prompt),
                    headers={"Accept": "application/x-ndjson"},
                ) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        fragment = self._fragment_from_line(line)
                        if fragment:
                            yield fragment
        except httpx.HTTPError as e:
            logger.error(f"Error calling Ollama: {e}")
            raise GenerationError(f"Ollama request failed: {e}") from e

    def stream_response_sync(self, prompt: str) -> Iterator[str]:
        """Stream a response from Ollama's generate API (synchronous)."""
        logger.info("Starting Ollama streaming call (model=%s)", self.model)
        try:
            with self.client.stream(
                "POST",
                f"{self.base_url}/api/generate",
                json=self._payload(prompt),
                headers={"Accept": "application/x-ndjson"},
            ) as response:
                response.raise_for_status()
                for line in response.iter_lines():
                    fragment = self._fragment_from_line(line)
                    if fragment:
                        yield fragment
        except httpx.HTTPError as e:
            logger.error(f"Error calling Ollama: {e}")
            raise GenerationError(f"Ollama request failed: {e}") from e

    def close(self):
        """Close the HTTP client."""
        self.client.close()


class GeminiProvider(LLMProvider):
    """Google Gemini LLM provider for remote models."""

    def __init__(self, model: str = "gemini-2.0-flash", api_key: str | None = None):
        self.model = model
        self.api_key = api_key or os.getenv("GEMINI_API_KEY")
        self.client = None
        self._init_client()

    def _init_client(self):
        """Initialize the Gemini client."""
        if not self.api_key:
            logger.warning("No Gemini API key provided. Generation requests will fail.")
            return

        genai.configure(api_key=self.api_key)
        self.client = genai.GenerativeModel(self.model)
        logger.info(f"Initialized Gemini client with model: {self.model}")

    def _require_client(self):
        if not self.client:
            raise ProviderConfigurationError(
                "Gemini API key is missing. Set GEMINI_API_KEY or pass --gemini-api-key."
            )
        return self.client

    @property
    def _generation_config(self) -> dict:
        return {
            **GENERATION_OPTIONS,
            "response_mime_type": "application/json",
            "response_schema": copy.deepcopy(RESPONSE_SCHEMA),
        }

    async def stream_response(self, prompt: str) -> AsyncIterator[str]:
        """Stream a response from Gemini."""
        client = self._require_client()
        try:
            response = await client.generate_content_async(
                prompt, generation_config=self._generation_config, stream=True
            )
            async for chunk in response:
                if chunk.text:
                    yield chunk.text
        except Exception as e:
            logger.error(f"Error calling Gemini: {e}")
            raise GenerationError(f"Gemini request failed: {e}") from e

    def stream_response_sync(self, prompt: str) -> Iterator[str]:
        """Stream a response from Gemini (synchronous)."""
        client = self._require_client()
        try:
            response = client.generate_content(
                prompt, generation_config=self._generation_config, stream=True
            )
            for chunk in response:
                if chunk.text:
                    yield chunk.text
        except Exception as e:
            logger.error(f"Error calling Gemini: {e}")
            raise GenerationError(f"Gemini request failed: {e}") from e

    def close(self):
        """Close any connections (Gemini doesn't require explicit closing)."""
        pass


class LLMProviderFactory:
    """Factory for creating LLM providers."""

    @staticmethod
    def create_provider(provider_type: str, model: str, **kwargs) -> LLMProvider:
        """Create an LLM provider based on the provider type."""
        if provider_type.lower() == "ollama":
            base_url = kwargs.get("base_url", "http://localhost:11434")
            return OllamaProvider(model=model, base_url=base_url)
        elif provider_type.lower() == "gemini":
            api_key = kwargs.get("api_key") or os.getenv("GEMINI_API_KEY")
            return GeminiProvider(model=model, api_key=api_key)
        else:
            raise ValueError(f"Unsupported provider type: {provider_type}")

    @staticmethod
    def from_config(config) -> LLMProvider:
        """Create the provider selected by a ``Config`` instance."""
        if config.LLM_PROVIDER.lower() == "ollama":
            return LLMProviderFactory.create_provider(
                "ollama", config.OLLAMA_MODEL, base_url=config.OLLAMA_URL
            )
        return LLMProviderFactory.create_provider(
            config.LLM_PROVIDER, config.GEMINI_MODEL, api_key=config.GEMINI_API_KEY
        )
