"""Quarry — knowledge-base ingestion with exactly-once external imports."""

__version__ = "0.1.0"
