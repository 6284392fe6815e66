"""
Sync Status repository.

Data access layer for the per-chain ingestion cursor.
"""

from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chain_indexer.models.sync_status import SyncStatus
from chain_indexer.repositories.base import BaseRepository


class SyncStatusRepository(BaseRepository[SyncStatus]):
    """Repository for sync cursors."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(SyncStatus, session)

    async def read(self, chain: str) -> SyncStatus | None:
        """
        Get sync cursor for a chain.

        Args:
            chain: Chain identifier (BTC, ETH)

        Returns:
            Cursor or None if the chain was never indexed
        """
        return await self.get_by(chain=chain)

    async def advance(
        self,
        chain: str,
        height: int,
        block_hash: str,
        syncing: bool = True,
    ) -> None:
        """
        Move cursor to a committed block.

        Unconditional overwrite: only one engine writes a chain's row.

        Args:
            chain: Chain identifier
            height: Height of the committed block
            block_hash: Hash of the committed block
            syncing: Whether a batch is in progress
        """
        now = datetime.now(UTC)
        await self.upsert(
            SyncStatus,
            ["chain"],
            ["last_indexed_block", "last_indexed_hash", "is_syncing",
             "last_sync_at", "updated_at"],
            chain=chain,
            last_indexed_block=height,
            last_indexed_hash=block_hash,
            is_syncing=syncing,
            last_sync_at=now,
            updated_at=now,
        )

    async def set_syncing(self, chain: str, syncing: bool) -> None:
        """
        Set syncing flag without touching the cursor.

        No-op for a chain that has no cursor yet.
        """
        stmt = (
            update(SyncStatus)
            .where(SyncStatus.chain == chain)
            .values(is_syncing=syncing, updated_at=datetime.now(UTC))
        )
        await self.session.execute(stmt)

    async def rewind(self, chain: str, height: int, block_hash: str | None) -> None:
        """
        Move cursor back to a common ancestor after a reorg.

        Args:
            chain: Chain identifier
            height: Height of the last block still valid
            block_hash: Hash of that block
        """
        current = await self.read(chain)
        logger.warning(
            f"[{chain} Cursor] Rewinding from "
            f"{current.last_indexed_block if current else 'none'} to {height}"
        )
        await self.advance(chain, height, block_hash, syncing=True)

    async def get_all(self) -> list[SyncStatus]:
        """Get cursors of all chains (status projection)."""
        result = await self.session.execute(
            select(SyncStatus).order_by(SyncStatus.chain)
        )
        return list(result.scalars().all())
