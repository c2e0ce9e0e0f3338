"""LLM provider adapters (ILLMProvider).

    - OpenAILLMProvider    -- gpt-4o-mini, or any OpenAI-compatible endpoint
    - AnthropicLLMProvider -- Claude via the Messages API
    - OllamaLLMProvider    -- local models via an Ollama server

``docrag.main`` builds exactly one of these from ``Settings.llm_provider``.
"""

from docrag.providers.llm.anthropic_provider import AnthropicLLMProvider
from docrag.providers.llm.ollama_provider import OllamaLLMProvider
from docrag.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OllamaLLMProvider", "OpenAILLMProvider"]
