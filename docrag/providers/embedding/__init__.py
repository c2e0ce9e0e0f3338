"""Embedding provider adapters (IEmbeddingProvider).

    - OpenAIEmbeddingProvider     -- OpenAI or any OpenAI-compatible endpoint
    - OllamaEmbeddingProvider     -- nomic-embed-text on a local Ollama server
    - FastEmbedEmbeddingProvider  -- local ONNX model, imported lazily
"""

from docrag.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider
from docrag.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["FastEmbedEmbeddingProvider", "OllamaEmbeddingProvider", "OpenAIEmbeddingProvider"]
