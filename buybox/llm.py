"""Async text-completion client over Anthropic, OpenAI, Gemini and OpenAI-compatible servers."""
from __future__ import annotations

import logging
import os
from typing import Any

import httpx

log = logging.getLogger(__name__)

DEFAULT_MODELS = {
    "anthropic": "claude-haiku-4-5-20251001",
    "openai": "gpt-4o-mini",
    "openai_compatible": "gpt-4o-mini",
    "ollama": "llama3.1",
    "gemini": "gemini-2.0-flash",
}
DEFAULT_OLLAMA_URL = "http://localhost:11434"
GEMINI_OPENAI_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


class LLMCallError(Exception):
    """LLM call failed or returned no usable text."""
    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class CompletionClient:
    """Unified async completion client returning plain text.

    ``ollama`` talks to a local Ollama server through its OpenAI-compatible
    ``/v1`` endpoint; ``gemini`` uses Google's OpenAI-compatible endpoint and
    ``openai_compatible`` does the same for any base URL.
    """

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        max_tokens: int = 4000,
        temperature: float = 0.3,
    ):
        self.provider = provider or os.environ.get("LLM_PROVIDER", "anthropic")
        self.model = model or ""
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._api_key = api_key
        self._base_url = base_url
        self._client: Any = None
        self._init_client()

    def _init_client(self) -> None:
        if self.provider not in DEFAULT_MODELS:
            raise ValueError(f"Unknown LLM provider: {self.provider!r}")
        self.model = self.model or DEFAULT_MODELS[self.provider]
        if self.provider == "anthropic":
            import anthropic
            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key or os.environ.get("ANTHROPIC_API_KEY")
            )
            return

        import openai
        kwargs: dict[str, Any] = {}
        if self.provider == "ollama":
            self._base_url = (self._base_url or os.environ.get("OLLAMA_BASE_URL") or DEFAULT_OLLAMA_URL).rstrip("/")
            kwargs["base_url"] = f"{self._base_url}/v1"
            kwargs["api_key"] = self._api_key or "ollama"
        elif self.provider == "gemini":
            kwargs["base_url"] = self._base_url or GEMINI_OPENAI_URL
            kwargs["api_key"] = self._api_key or os.environ.get("GEMINI_API_KEY")
        else:
            key = self._api_key or os.environ.get("OPENAI_API_KEY")
            if key:
                kwargs["api_key"] = key
            url = self._base_url or os.environ.get("OPENAI_BASE_URL")
            if url:
                kwargs["base_url"] = url
        self._client = openai.AsyncOpenAI(**kwargs)

    async def complete(self, prompt: str, system: str | None = None) -> str:
        """Send *prompt* (and optional system instruction), return the response text."""
        try:
            if self.provider == "anthropic":
                kwargs: dict[str, Any] = {}
                if system:
                    kwargs["system"] = system
                response = await self._client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    messages=[{"role": "user", "content": prompt}],
                    **kwargs,
                )
                text = "".join(
                    getattr(block, "text", "") for block in response.content
                )
            else:
                messages = []
                if system:
                    messages.append({"role": "system", "content": system})
                messages.append({"role": "user", "content": prompt})
                response = await self._client.chat.completions.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    messages=messages,
                )
                text = response.choices[0].message.content or ""
        except LLMCallError:
            raise
        except Exception as exc:
            raise LLMCallError(f"LLM API call failed: {exc}", retryable=True) from exc

        text = text.strip()
        if not text:
            raise LLMCallError("LLM returned an empty response", retryable=True)
        return text

    async def health_check(self) -> bool:
        """Return True if an Ollama server answers ``/api/tags``. Other providers: True."""
        if self.provider != "ollama":
            return True
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                resp = await client.get(f"{self._base_url}/api/tags")
                return resp.status_code == 200
        except httpx.HTTPError as exc:
            log.warning("Ollama health check failed at %s: %s", self._base_url, exc)
            return False
