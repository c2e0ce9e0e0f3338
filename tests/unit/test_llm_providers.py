"""Unit tests for LLM provider adapters: OpenAI, Anthropic, Ollama."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest

from docrag.config.settings import Settings
from docrag.models.generation import ChatMessage, GenerationOptions
from docrag.utils.errors import LLMError


# ======================================================================
# Shared helpers
# ======================================================================

def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_text_model": "",
        "anthropic_api_key": "test-anthropic",
        "ollama_base_url": "http://localhost:11434",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


_MESSAGES = [
    ChatMessage(role="system", content="Answer from the context."),
    ChatMessage(role="user", content="Context:\n\n\nQuestion: refunds?\n\nAnswer:"),
]


def _chat_completion(content: str | None = "42", finish_reason: str = "stop") -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content), finish_reason=finish_reason)]
    response.usage = MagicMock(prompt_tokens=20, completion_tokens=4)
    return response


def _openai_api_error() -> openai.APIError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return openai.APIError("server error", request, body=None)


# ======================================================================
# OpenAI LLM Provider
# ======================================================================


class TestOpenAILLMProvider:
    def test_provider_name(self) -> None:
        from docrag.providers.llm.openai_provider import OpenAILLMProvider

        assert OpenAILLMProvider(_settings()).get_provider_name() == "openai"
        compatible = OpenAILLMProvider(_settings(openai_base_url="http://vllm:8000/v1"))
        assert compatible.get_provider_name() == "openai-compatible"

    def test_is_available(self) -> None:
        from docrag.providers.llm.openai_provider import OpenAILLMProvider

        assert OpenAILLMProvider(_settings()).is_available() is True
        assert OpenAILLMProvider(_settings(openai_api_key="")).is_available() is False

    @pytest.mark.asyncio
    async def test_generate_passes_messages_and_options(self) -> None:
        from docrag.providers.llm.openai_provider import OpenAILLMProvider

        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_chat_completion("refunds within 30 days"))
        with patch("docrag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            result = await provider.generate(
                _MESSAGES, GenerationOptions(temperature=0.2, max_tokens=64, stop=["\n\n"])
            )

        assert result.text == "refunds within 30 days"
        assert result.usage.total_tokens == 24
        assert result.model == "gpt-4o-mini"
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "Answer from the context."}
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 64
        assert kwargs["stop"] == ["\n\n"]
        assert "top_p" not in kwargs

    @pytest.mark.asyncio
    async def test_empty_content_raises(self) -> None:
        from docrag.providers.llm.openai_provider import OpenAILLMProvider

        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_chat_completion(None))
        with patch("docrag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            with pytest.raises(LLMError, match="empty response"):
                await provider.generate(_MESSAGES)

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self) -> None:
        from docrag.providers.llm.openai_provider import OpenAILLMProvider

        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=_openai_api_error())
        with patch("docrag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            with pytest.raises(LLMError) as excinfo:
                await provider.generate(_MESSAGES)
        assert excinfo.value.provider_name == "openai"

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self) -> None:
        from docrag.providers.llm.openai_provider import OpenAILLMProvider

        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=openai.APITimeoutError(request))
        with patch("docrag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            with pytest.raises(LLMError, match="timed out"):
                await provider.generate(_MESSAGES)


# ======================================================================
# Anthropic LLM Provider
# ======================================================================


def _anthropic_message(*texts: str) -> MagicMock:
    response = MagicMock()
    response.content = [MagicMock(type="text", text=t) for t in texts]
    response.usage = MagicMock(input_tokens=30, output_tokens=6)
    response.stop_reason = "end_turn"
    return response


class TestAnthropicLLMProvider:
    def test_provider_name_and_availability(self) -> None:
        from docrag.providers.llm.anthropic_provider import AnthropicLLMProvider

        assert AnthropicLLMProvider(_settings()).get_provider_name() == "anthropic"
        assert AnthropicLLMProvider(_settings(anthropic_api_key="")).is_available() is False

    @pytest.mark.asyncio
    async def test_system_prompt_is_separate_argument(self) -> None:
        from docrag.providers.llm.anthropic_provider import AnthropicLLMProvider

        mock_client = MagicMock()
        mock_client.messages.create = AsyncMock(return_value=_anthropic_message("part one", "part two"))
        with patch(
            "docrag.providers.llm.anthropic_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = AnthropicLLMProvider(_settings())
            result = await provider.generate(_MESSAGES, GenerationOptions(temperature=1.5))

        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["system"] == "Answer from the context."
        assert [m["role"] for m in kwargs["messages"]] == ["user"]
        assert kwargs["temperature"] == 1.0
        assert result.text == "part one\npart two"
        assert result.usage.prompt_tokens == 30
        assert result.finish_reason == "end_turn"

    @pytest.mark.asyncio
    async def test_no_text_blocks_raises(self) -> None:
        from docrag.providers.llm.anthropic_provider import AnthropicLLMProvider

        response = _anthropic_message()
        mock_client = MagicMock()
        mock_client.messages.create = AsyncMock(return_value=response)
        with patch(
            "docrag.providers.llm.anthropic_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = AnthropicLLMProvider(_settings())
            with pytest.raises(LLMError, match="no text content"):
                await provider.generate(_MESSAGES)

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self) -> None:
        from docrag.providers.llm.anthropic_provider import AnthropicLLMProvider

        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        mock_client = MagicMock()
        mock_client.messages.create = AsyncMock(
            side_effect=anthropic.APIError("overloaded", request, body=None)
        )
        with patch(
            "docrag.providers.llm.anthropic_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = AnthropicLLMProvider(_settings())
            with pytest.raises(LLMError, match="Anthropic API error"):
                await provider.generate(_MESSAGES)


# ======================================================================
# Ollama LLM Provider
# ======================================================================


class TestOllamaLLMProvider:
    def test_provider_name(self) -> None:
        from docrag.providers.llm.ollama_provider import OllamaLLMProvider

        assert OllamaLLMProvider(_settings()).get_provider_name() == "ollama"

    @pytest.mark.asyncio
    async def test_generate(self) -> None:
        from docrag.providers.llm.ollama_provider import OllamaLLMProvider

        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_chat_completion("local answer"))
        with patch("docrag.providers.llm.ollama_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OllamaLLMProvider(_settings(ollama_text_model="llama3.1:8b"))
            result = await provider.generate(_MESSAGES)

        assert result.text == "local answer"
        assert mock_client.chat.completions.create.call_args.kwargs["model"] == "llama3.1:8b"

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self) -> None:
        from docrag.providers.llm.ollama_provider import OllamaLLMProvider

        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=_openai_api_error())
        with patch("docrag.providers.llm.ollama_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OllamaLLMProvider(_settings())
            with pytest.raises(LLMError, match="Ollama API error"):
                await provider.generate(_MESSAGES)

    def test_is_available_when_server_down(self) -> None:
        from docrag.providers.llm.ollama_provider import OllamaLLMProvider

        provider = OllamaLLMProvider(_settings())
        with patch(
            "docrag.providers.llm.ollama_provider.httpx.get",
            side_effect=httpx.TimeoutException("slow"),
        ):
            assert provider.is_available() is False
