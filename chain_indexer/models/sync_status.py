"""
Sync Status model.

Per-chain cursor of the highest fully committed block.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from chain_indexer.models.base import Base


class SyncStatus(Base):
    """
    Tracks blockchain synchronization state.

    Used to:
    - Resume ingestion after restart
    - Report committed progress to read-only consumers

    Only the ingestion engine of ``chain`` writes its row.
    """

    __tablename__ = "sync_status"

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Chain identification
    chain: Mapped[str] = mapped_column(
        String(10), nullable=False, unique=True, index=True
    )  # BTC, ETH

    # Cursor
    last_indexed_block: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    last_indexed_hash: Mapped[str | None] = mapped_column(
        String(66), nullable=True
    )

    # Status
    is_syncing: Mapped[bool] = mapped_column(default=False, nullable=False)
    last_sync_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Timestamps
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<SyncStatus(chain={self.chain}, "
            f"block={self.last_indexed_block}, syncing={self.is_syncing})>"
        )
