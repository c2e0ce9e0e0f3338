"""Ollama LLM provider adapter.

Ollama exposes an OpenAI-compatible ``/v1`` API, so this adapter reuses
``openai.AsyncOpenAI`` pointed at the local server instead of a separate
HTTP client.  Defaults to ``llama3.1``.

Setup: install Ollama, ``ollama pull llama3.1``, then set
``OLLAMA_BASE_URL=http://localhost:11434``.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from docrag.config.settings import Settings
from docrag.interfaces.llm_provider import ILLMProvider
from docrag.models.generation import (
    ChatMessage,
    GenerationOptions,
    GenerationResult,
    TokenUsage,
)
from docrag.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)


class OllamaLLMProvider(ILLMProvider):
    """LLM provider backed by a local Ollama server."""

    def __init__(self, settings: Settings) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key="ollama",  # required by the SDK, ignored by Ollama
            timeout=openai.Timeout(settings.provider_timeout_seconds, connect=5.0),
        )
        self._model = settings.ollama_text_model

    async def generate(
        self,
        messages: list[ChatMessage],
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        options = options or GenerationOptions()
        kwargs: dict = {
            "model": self._model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }
        if options.top_p is not None:
            kwargs["top_p"] = options.top_p
        if options.stop:
            kwargs["stop"] = options.stop

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIError as exc:
            raise LLMError(
                message=f"Ollama API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        choice = response.choices[0] if response.choices else None
        content = choice.message.content if choice else None
        if content is None:
            raise LLMError(
                message="Ollama returned empty response",
                provider_name=self.get_provider_name(),
            )

        usage = TokenUsage(
            prompt_tokens=response.usage.prompt_tokens if response.usage else 0,
            completion_tokens=response.usage.completion_tokens if response.usage else 0,
        )
        logger.info("ollama_generation", model=self._model, tokens=usage.total_tokens)
        return GenerationResult(
            text=content,
            usage=usage,
            finish_reason=choice.finish_reason,
            model=self._model,
        )

    def get_provider_name(self) -> str:
        return "ollama"

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama server answers."""
        try:
            response = httpx.get(f"{self._base_url}/api/tags", timeout=3.0)
            return response.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False
