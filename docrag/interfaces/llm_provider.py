"""Abstract base class for LLM generation providers.

Implementations wrap the OpenAI API (or any compatible endpoint), the
Anthropic Messages API, or a local Ollama server.  Providers are stateless:
each call carries its full message list and no conversation is retained.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docrag.models.generation import ChatMessage, GenerationOptions, GenerationResult


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider, OllamaLLMProvider
# Located in: docrag/providers/llm/
class ILLMProvider(ABC):
    """Contract for language-model generation."""

    @abstractmethod
    async def generate(
        self,
        messages: list[ChatMessage],
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        """Generate a completion for *messages*.

        Parameters
        ----------
        messages:
            Ordered chat messages.  System messages set behaviour; the last
            user message carries the request.
        options:
            Sampling options.  Defaults apply when ``None``.

        Returns
        -------
        GenerationResult
            The text plus token usage and finish reason when reported.

        Raises
        ------
        docrag.utils.errors.LLMError
            If the API call fails or returns no text.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials or an endpoint are configured."""
