"""Ingestion - one content source to statements, topics and a knowledge point."""

from himind.features.ingestion.service import IngestionService

__all__ = ["IngestionService"]
