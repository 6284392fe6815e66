"""
Ingestion engine state and configuration.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from chain_indexer.config.constants import (
    CHAIN_BTC,
    DEFAULT_ERROR_BACKOFF_SECONDS,
    DEFAULT_MAX_BLOCKS_PER_BATCH,
    DEFAULT_MAX_REORG_DEPTH,
    DEFAULT_POLL_INTERVAL_SECONDS,
)
from chain_indexer.config.settings import Settings


class EngineState(StrEnum):
    """
    Lifecycle of one ingestion engine.

    STOPPED -> STARTING -> IDLE <-> BATCHING <-> INDEXING_BLOCK
    BATCHING / INDEXING_BLOCK -> ERROR_BACKOFF -> IDLE
    any running state -> STOPPING -> STOPPED
    """

    STOPPED = "stopped"
    STARTING = "starting"
    IDLE = "idle"
    BATCHING = "batching"
    INDEXING_BLOCK = "indexing_block"
    ERROR_BACKOFF = "error_backoff"
    STOPPING = "stopping"


@dataclass(frozen=True)
class EngineConfig:
    """Per-chain loop parameters."""

    start_height: int = 0
    max_blocks_per_batch: int = DEFAULT_MAX_BLOCKS_PER_BATCH
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    error_backoff: float = DEFAULT_ERROR_BACKOFF_SECONDS
    max_reorg_depth: int = DEFAULT_MAX_REORG_DEPTH

    @classmethod
    def for_chain(cls, settings: Settings, chain: str) -> "EngineConfig":
        """Build loop parameters for one chain from settings."""
        start = settings.btc_start_block if chain == CHAIN_BTC else settings.eth_start_block
        return cls(
            start_height=start,
            max_blocks_per_batch=settings.max_blocks_per_batch,
            poll_interval=settings.indexer_poll_interval,
            error_backoff=settings.error_backoff_seconds,
            max_reorg_depth=settings.max_reorg_depth,
        )


@dataclass
class BatchResult:
    """Outcome of one batch iteration."""

    chain: str
    tip: int
    cursor: int
    from_height: int | None = None
    to_height: int | None = None
    indexed: int = 0
    skipped: int = 0
    caught_up: bool = False
    stopped_early: bool = False
    rolled_back_to: int | None = None
    finished_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict:
        """Status projection."""
        return {
            "chain": self.chain,
            "tip": self.tip,
            "cursor": self.cursor,
            "from_height": self.from_height,
            "to_height": self.to_height,
            "indexed": self.indexed,
            "skipped": self.skipped,
            "caught_up": self.caught_up,
            "stopped_early": self.stopped_early,
            "rolled_back_to": self.rolled_back_to,
            "finished_at": self.finished_at.isoformat(),
        }
