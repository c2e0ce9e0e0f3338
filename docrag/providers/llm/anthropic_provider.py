"""Anthropic LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.

Differences from the OpenAI adapter:
    - The system prompt is a separate ``system`` argument, not a message.
    - The response is a list of content blocks; text blocks are joined.
"""

from __future__ import annotations

import anthropic
import structlog

from docrag.config.settings import Settings
from docrag.interfaces.llm_provider import ILLMProvider
from docrag.models.generation import (
    ChatMessage,
    GenerationOptions,
    GenerationResult,
    TokenUsage,
    split_system,
)
from docrag.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicLLMProvider(ILLMProvider):
    """LLM provider backed by the Anthropic Messages API."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.anthropic_api_key
        self._client = anthropic.AsyncAnthropic(
            api_key=self._api_key or "unset",
            timeout=settings.provider_timeout_seconds,
        )
        self._model = settings.anthropic_model or _DEFAULT_MODEL

    async def generate(
        self,
        messages: list[ChatMessage],
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        options = options or GenerationOptions()
        system, turns = split_system(messages)
        kwargs: dict = {
            "model": self._model,
            "max_tokens": options.max_tokens,
            "messages": [{"role": m.role, "content": m.content} for m in turns],
            "temperature": min(options.temperature, 1.0),  # Anthropic caps at 1.0
        }
        if system:
            kwargs["system"] = system
        if options.top_p is not None:
            kwargs["top_p"] = options.top_p
        if options.stop:
            kwargs["stop_sequences"] = options.stop

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            raise LLMError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise LLMError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )

        usage = TokenUsage(
            prompt_tokens=response.usage.input_tokens,
            completion_tokens=response.usage.output_tokens,
        )
        logger.info(
            "anthropic_generation",
            model=self._model,
            input_tokens=usage.prompt_tokens,
            output_tokens=usage.completion_tokens,
        )
        return GenerationResult(
            text="\n".join(text_blocks),
            usage=usage,
            finish_reason=response.stop_reason,
            model=self._model,
        )

    def get_provider_name(self) -> str:
        return "anthropic"

    def is_available(self) -> bool:
        return bool(self._api_key)
