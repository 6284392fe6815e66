"""
Chain strategy interface.

A strategy holds everything chain-specific the ingestion engine needs:
how to resolve and fetch a block (remote), and how to decompose and
persist it (storage). Remote work happens in ``fetch_block`` so the
storage transaction in ``persist_block`` never waits on the network.
"""

from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from chain_indexer.services.chain_client.base import ChainClient


class ChainStrategy(ABC):
    """Chain-specific leaves of the ingestion loop."""

    chain: str

    def __init__(self, client: ChainClient) -> None:
        self.client = client

    @abstractmethod
    def repository(self, session: AsyncSession) -> Any:
        """Entity repository bound to a session."""

    @abstractmethod
    async def resolve_block_hash(self, height: int) -> str | None:
        """Hash of the block at height, None if the node does not serve it."""

    @abstractmethod
    async def fetch_block(self, height: int, block_hash: str) -> Any | None:
        """Fetch block with everything needed to persist it."""

    @abstractmethod
    def parent_hash(self, block: Any) -> str | None:
        """Parent hash of a fetched block."""

    @abstractmethod
    async def stored_block_hash(self, session: AsyncSession, height: int) -> str | None:
        """Hash of the stored block at height, None if not stored."""

    @abstractmethod
    async def persist_block(self, session: AsyncSession, block: Any) -> int:
        """
        Write block, transactions and derived rows.

        Returns:
            Number of transactions written
        """

    async def block_exists(self, session: AsyncSession, block_hash: str) -> bool:
        """Check if block is already stored."""
        return await self.repository(session).block_exists(block_hash)

    async def delete_above(self, session: AsyncSession, height: int) -> None:
        """Remove every stored row above height."""
        await self.repository(session).delete_above(height)
