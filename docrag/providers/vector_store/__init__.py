"""Vector store adapters (IVectorStoreProvider).

ChromaDBProvider is imported lazily by ``docrag.main`` so that the memory
store can be used without chromadb's import-time cost.
"""

from docrag.providers.vector_store.memory_provider import MemoryVectorStoreProvider

__all__ = ["MemoryVectorStoreProvider"]
