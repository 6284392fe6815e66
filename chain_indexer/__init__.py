"""Dual-chain blockchain ingestion pipeline."""

__version__ = "1.0.0"
