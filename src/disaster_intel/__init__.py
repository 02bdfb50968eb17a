"""Disaster intelligence: multi-source hazard ingestion and record merging."""

__version__ = "0.1.0"
