"""Document ingestion pipeline (extraction -> chunking -> embedding)."""

from docrag.pipeline.ingestion_pipeline import IngestionPipeline

__all__ = ["IngestionPipeline"]
