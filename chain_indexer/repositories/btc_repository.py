"""
Bitcoin repository.

Data access layer for blocks, transactions and address links of the
UTXO chain. Writes are idempotent (insert-if-absent on the natural key).
"""

from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from chain_indexer.models.btc import BtcAddressTransaction, BtcBlock, BtcTransaction
from chain_indexer.repositories.base import BaseRepository


class BtcRepository(BaseRepository[BtcBlock]):
    """Repository for Bitcoin entities."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(BtcBlock, session)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save_block(
        self,
        block_hash: str,
        block_height: int,
        block_time: datetime,
        previous_block_hash: str | None = None,
        **fields: Any,
    ) -> bool:
        """
        Store block unless already present.

        Args:
            block_hash: Block hash
            block_height: Block height
            block_time: Block timestamp (UTC)
            previous_block_hash: Parent hash (None for genesis)
            **fields: difficulty, nonce, merkle_root, size, weight,
                transaction_count

        Returns:
            True if inserted, False if the block already existed
        """
        return await self.insert_if_absent(
            BtcBlock,
            ["block_hash"],
            block_hash=block_hash,
            block_height=block_height,
            block_time=block_time,
            previous_block_hash=previous_block_hash,
            **fields,
        )

    async def save_transaction(self, tx_hash: str, **fields: Any) -> bool:
        """Store transaction unless already present."""
        return await self.insert_if_absent(
            BtcTransaction, ["tx_hash"], tx_hash=tx_hash, **fields
        )

    async def save_address_transaction(
        self,
        address: str,
        tx_hash: str,
        block_height: int,
        direction: str,
        amount: int,
    ) -> bool:
        """
        Store address link unless already present.

        Args:
            address: Bitcoin address
            tx_hash: Transaction id
            block_height: Height of the containing block
            direction: "input" or "output"
            amount: Amount in satoshi

        Returns:
            True if inserted
        """
        return await self.insert_if_absent(
            BtcAddressTransaction,
            ["address", "tx_hash", "direction"],
            address=address,
            tx_hash=tx_hash,
            block_height=block_height,
            direction=direction,
            amount=amount,
        )

    async def delete_above(self, height: int) -> None:
        """
        Delete every row above a height (reorg rollback).

        Args:
            height: Last height to keep
        """
        await self.session.execute(
            delete(BtcAddressTransaction).where(
                BtcAddressTransaction.block_height > height
            )
        )
        await self.session.execute(
            delete(BtcTransaction).where(BtcTransaction.block_height > height)
        )
        await self.session.execute(
            delete(BtcBlock).where(BtcBlock.block_height > height)
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def block_exists(self, block_hash: str) -> bool:
        """Check if block is stored."""
        return await self.exists(block_hash=block_hash)

    async def get_block_by_hash(self, block_hash: str) -> BtcBlock | None:
        """Get block by hash."""
        return await self.get_by(block_hash=block_hash)

    async def get_block_by_height(self, height: int) -> BtcBlock | None:
        """Get block by height."""
        return await self.get_by(block_height=height)

    async def get_transaction_by_hash(self, tx_hash: str) -> BtcTransaction | None:
        """Get transaction by id."""
        result = await self.session.execute(
            select(BtcTransaction).where(BtcTransaction.tx_hash == tx_hash)
        )
        return result.scalar_one_or_none()

    async def get_address_links(
        self,
        address: str,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[BtcAddressTransaction], int]:
        """
        Get address links, newest first.

        Args:
            address: Bitcoin address
            limit: Page size
            offset: Rows to skip

        Returns:
            Tuple of (links, total count for the address)
        """
        total = await self.session.scalar(
            select(func.count())
            .select_from(BtcAddressTransaction)
            .where(BtcAddressTransaction.address == address)
        )

        query = (
            select(BtcAddressTransaction)
            .where(BtcAddressTransaction.address == address)
            .order_by(
                BtcAddressTransaction.block_height.desc(),
                BtcAddressTransaction.id.desc(),
            )
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all()), total or 0

    async def get_address_transactions(
        self,
        address: str,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[BtcTransaction], int]:
        """
        Get distinct transactions touching an address, newest first.

        Returns:
            Tuple of (transactions, total count)
        """
        linked = (
            select(BtcAddressTransaction.tx_hash)
            .where(BtcAddressTransaction.address == address)
            .distinct()
        )

        total = await self.session.scalar(
            select(func.count()).select_from(linked.subquery())
        )

        query = (
            select(BtcTransaction)
            .where(BtcTransaction.tx_hash.in_(linked))
            .order_by(BtcTransaction.block_height.desc(), BtcTransaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all()), total or 0
