"""Malaysian school directory: ingestion, search and statistics."""

__version__ = "0.1.0"
