"""Job ingestion sweep with deduplication and an AI request guard."""

__version__ = "0.3.0"
