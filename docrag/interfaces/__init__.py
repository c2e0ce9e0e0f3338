"""Abstract provider contracts.

Each capability the pipeline depends on is an ABC here; concrete adapters
live under ``docrag/providers/`` and are chosen once at startup in
``docrag/main.py``.
"""

from docrag.interfaces.cache_provider import ICacheProvider
from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.llm_provider import ILLMProvider
from docrag.interfaces.notification_verifier import INotificationVerifier
from docrag.interfaces.storage_provider import IStorageProvider
from docrag.interfaces.text_extractor import ITextExtractor
from docrag.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "ICacheProvider",
    "IDocumentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "INotificationVerifier",
    "IStorageProvider",
    "ITextExtractor",
    "IVectorStoreProvider",
]
