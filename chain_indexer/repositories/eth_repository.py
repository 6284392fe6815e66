"""
Ethereum repository.

Data access layer for blocks, transactions, balance snapshots and token
transfers of the account chain. Addresses and hashes are expected
lower-case; lookups normalize their arguments.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from chain_indexer.models.eth import (
    EthBalance,
    EthBlock,
    EthTokenTransfer,
    EthTransaction,
)
from chain_indexer.repositories.base import BaseRepository


class EthRepository(BaseRepository[EthBlock]):
    """Repository for Ethereum entities."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(EthBlock, session)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save_block(
        self,
        block_hash: str,
        block_number: int,
        block_time: datetime,
        **fields: Any,
    ) -> bool:
        """
        Store block unless already present.

        Args:
            block_hash: Block hash
            block_number: Block number
            block_time: Block timestamp (UTC)
            **fields: parent_hash, nonce, difficulty, size, gas_limit,
                gas_used, miner, extra_data, transaction_count

        Returns:
            True if inserted
        """
        return await self.insert_if_absent(
            EthBlock,
            ["block_hash"],
            block_hash=block_hash,
            block_number=block_number,
            block_time=block_time,
            **fields,
        )

    async def save_transaction(self, tx_hash: str, **fields: Any) -> bool:
        """Store transaction unless already present."""
        return await self.insert_if_absent(
            EthTransaction, ["tx_hash"], tx_hash=tx_hash, **fields
        )

    async def save_token_transfer(
        self, tx_hash: str, log_index: int, **fields: Any
    ) -> bool:
        """Store token transfer unless (tx_hash, log_index) exists."""
        return await self.insert_if_absent(
            EthTokenTransfer,
            ["tx_hash", "log_index"],
            tx_hash=tx_hash,
            log_index=log_index,
            **fields,
        )

    async def save_balance(
        self, address: str, block_number: int, balance: int | Decimal
    ) -> None:
        """
        Record balance observation, refreshing an existing one.

        Args:
            address: Account address
            block_number: Block the balance was read at
            balance: Balance in wei
        """
        await self.upsert(
            EthBalance,
            ["address", "block_number"],
            ["balance"],
            address=address.lower(),
            block_number=block_number,
            balance=Decimal(balance),
        )

    async def delete_above(self, number: int) -> None:
        """
        Delete every row above a block number (reorg rollback).

        Args:
            number: Last block number to keep
        """
        await self.session.execute(
            delete(EthTokenTransfer).where(EthTokenTransfer.block_number > number)
        )
        await self.session.execute(
            delete(EthBalance).where(EthBalance.block_number > number)
        )
        await self.session.execute(
            delete(EthTransaction).where(EthTransaction.block_number > number)
        )
        await self.session.execute(
            delete(EthBlock).where(EthBlock.block_number > number)
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def block_exists(self, block_hash: str) -> bool:
        """Check if block is stored."""
        return await self.exists(block_hash=block_hash.lower())

    async def get_block_by_hash(self, block_hash: str) -> EthBlock | None:
        """Get block by hash."""
        return await self.get_by(block_hash=block_hash.lower())

    async def get_block_by_number(self, number: int) -> EthBlock | None:
        """Get block by number."""
        return await self.get_by(block_number=number)

    async def get_transaction_by_hash(self, tx_hash: str) -> EthTransaction | None:
        """Get transaction by hash."""
        result = await self.session.execute(
            select(EthTransaction).where(EthTransaction.tx_hash == tx_hash.lower())
        )
        return result.scalar_one_or_none()

    async def get_address_transactions(
        self,
        address: str,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[EthTransaction], int]:
        """
        Get transactions sent or received by an address, newest first.

        Args:
            address: Account address
            limit: Page size
            offset: Rows to skip

        Returns:
            Tuple of (transactions, total count)
        """
        addr = address.lower()
        condition = or_(
            EthTransaction.from_address == addr,
            EthTransaction.to_address == addr,
        )

        total = await self.session.scalar(
            select(func.count()).select_from(EthTransaction).where(condition)
        )

        query = (
            select(EthTransaction)
            .where(condition)
            .order_by(
                EthTransaction.block_number.desc(),
                EthTransaction.transaction_index.desc(),
            )
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all()), total or 0

    async def get_latest_balance(self, address: str) -> EthBalance | None:
        """
        Get most recent balance observation.

        Returns:
            Snapshot with the greatest block number, or None
        """
        query = (
            select(EthBalance)
            .where(EthBalance.address == address.lower())
            .order_by(EthBalance.block_number.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_token_transfers(
        self,
        token_address: str,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[EthTokenTransfer], int]:
        """
        Get transfers of one token contract, newest first.

        Returns:
            Tuple of (transfers, total count)
        """
        token = token_address.lower()

        total = await self.session.scalar(
            select(func.count())
            .select_from(EthTokenTransfer)
            .where(EthTokenTransfer.token_address == token)
        )

        query = (
            select(EthTokenTransfer)
            .where(EthTokenTransfer.token_address == token)
            .order_by(
                EthTokenTransfer.block_number.desc(),
                EthTokenTransfer.log_index.desc(),
            )
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all()), total or 0
