"""Configuration package."""

from chain_indexer.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
