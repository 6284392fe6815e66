"""
Ethereum ingestion strategy.

For each transaction hash of a block: fetch transaction and receipt,
sample sender and receiver balances at the block, decode ERC-20
transfers from the receipt logs.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from chain_indexer.config.constants import CHAIN_ETH
from chain_indexer.repositories.eth_repository import EthRepository
from chain_indexer.services.chain_client.eth_client import EthClient
from chain_indexer.services.chain_client.types import (
    EthBlockData,
    EthReceiptData,
    EthTransactionData,
)
from chain_indexer.services.ingestion.strategy import ChainStrategy
from chain_indexer.services.token_transfer_decoder import extract_token_transfers
from chain_indexer.utils.exceptions import ChainClientError


@dataclass
class EthBlockBundle:
    """Block header plus fetched transactions, receipts and balances."""

    block: EthBlockData
    transactions: list[tuple[EthTransactionData, EthReceiptData]] = field(
        default_factory=list
    )
    balances: dict[str, int] = field(default_factory=dict)
    skipped: int = 0


class EthStrategy(ChainStrategy):
    """Ethereum leaves of the ingestion loop."""

    chain = CHAIN_ETH

    def __init__(self, client: EthClient) -> None:
        super().__init__(client)
        # Header fetched while resolving the hash, reused by fetch_block
        self._last_header: EthBlockData | None = None

    def repository(self, session: AsyncSession) -> EthRepository:
        return EthRepository(session)

    async def resolve_block_hash(self, height: int) -> str | None:
        header = await self.client.block_at(height, include_transactions=True)
        self._last_header = header
        return header.hash if header else None

    async def fetch_block(self, height: int, block_hash: str) -> EthBlockBundle | None:
        header = self._last_header
        if header is None or header.hash != block_hash.lower():
            header = await self.client.block_at(block_hash, include_transactions=True)
        self._last_header = None
        if header is None:
            return None

        bundle = EthBlockBundle(block=header)
        for tx_hash in header.transactions:
            tx = await self.client.transaction(tx_hash)
            receipt = await self.client.receipt(tx_hash)
            if tx is None or receipt is None:
                logger.warning(
                    f"[ETH Indexer] Transaction or receipt {tx_hash} missing "
                    f"in block {header.number}, skipping"
                )
                bundle.skipped += 1
                continue

            bundle.transactions.append((tx, receipt))
            for address in (tx.from_address, tx.to_address):
                if address and address not in bundle.balances:
                    await self._sample_balance(bundle, address)

        return bundle

    async def _sample_balance(self, bundle: EthBlockBundle, address: str) -> None:
        """Fetch balance at the block; failures are logged and ignored."""
        try:
            bundle.balances[address] = await self.client.balance(
                address, bundle.block.number
            )
        except ChainClientError as e:
            logger.warning(
                f"[ETH Indexer] Balance of {address} at block "
                f"{bundle.block.number} unavailable: {e}"
            )

    def parent_hash(self, block: EthBlockBundle) -> str | None:
        return block.block.parent_hash

    async def stored_block_hash(self, session: AsyncSession, height: int) -> str | None:
        stored = await self.repository(session).get_block_by_number(height)
        return stored.block_hash if stored else None

    async def persist_block(self, session: AsyncSession, block: EthBlockBundle) -> int:
        repo = self.repository(session)
        data = block.block
        block_time = datetime.fromtimestamp(data.timestamp, tz=UTC)

        await repo.save_block(
            block_hash=data.hash,
            block_number=data.number,
            block_time=block_time,
            parent_hash=data.parent_hash,
            nonce=data.nonce,
            difficulty=Decimal(data.difficulty) if data.difficulty is not None else None,
            size=data.size,
            gas_limit=data.gas_limit,
            gas_used=data.gas_used,
            miner=data.miner,
            extra_data=data.extra_data,
            transaction_count=len(data.transactions),
        )

        for tx, receipt in block.transactions:
            await repo.save_transaction(
                tx_hash=tx.hash,
                block_hash=data.hash,
                block_number=data.number,
                block_time=block_time,
                transaction_index=tx.transaction_index,
                from_address=tx.from_address,
                to_address=tx.to_address,
                value=Decimal(tx.value),
                gas_price=_wei(tx.gas_price),
                max_fee_per_gas=_wei(tx.max_fee_per_gas),
                max_priority_fee_per_gas=_wei(tx.max_priority_fee_per_gas),
                gas_limit=tx.gas_limit,
                gas_used=receipt.gas_used,
                nonce=tx.nonce,
                input_data=tx.input_data,
                status=receipt.status,
                contract_address=receipt.contract_address,
            )

            for transfer in extract_token_transfers(receipt.logs):
                await repo.save_token_transfer(
                    tx_hash=tx.hash,
                    log_index=transfer.log_index,
                    block_hash=data.hash,
                    block_number=data.number,
                    block_time=block_time,
                    token_address=transfer.token_address,
                    from_address=transfer.from_address,
                    to_address=transfer.to_address,
                    value=Decimal(transfer.value),
                )

        for address, balance in block.balances.items():
            await repo.save_balance(address, data.number, balance)

        return len(block.transactions)


def _wei(value: int | None) -> Decimal | None:
    return Decimal(value) if value is not None else None
