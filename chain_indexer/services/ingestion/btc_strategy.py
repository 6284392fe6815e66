"""
Bitcoin ingestion strategy.

Decomposes a block into transactions and address links. Output values
are converted to satoshi with Decimal arithmetic. Input values are only
known when ``resolve_inputs`` is enabled: each spent output is looked up
with an extra getrawtransaction call. Otherwise total input value and
fee stay NULL.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from chain_indexer.config.constants import CHAIN_BTC, SATOSHI_PER_BTC
from chain_indexer.repositories.btc_repository import BtcRepository
from chain_indexer.services.chain_client.btc_client import BtcClient
from chain_indexer.services.chain_client.types import (
    BtcBlockData,
    BtcTransactionData,
    extract_output_addresses,
)
from chain_indexer.services.ingestion.strategy import ChainStrategy

DIRECTION_INPUT = "input"
DIRECTION_OUTPUT = "output"


def to_satoshi(value: Any) -> int:
    """Convert coin amount (Decimal or numeric string) to satoshi."""
    amount = Decimal(str(value)) * SATOSHI_PER_BTC
    return int(amount.to_integral_value())


def json_safe(value: Any) -> Any:
    """Make node structures JSON-serializable (Decimal -> str)."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {key: json_safe(item) for key, item in value.items()}
    if isinstance(value, list):
        return [json_safe(item) for item in value]
    return value


@dataclass
class SpentOutput:
    """Previous output consumed by an input."""

    value: int  # satoshi
    addresses: list[str]


@dataclass
class BtcBlockBundle:
    """
    Block plus resolved inputs.

    ``spent`` maps txid -> list of spent outputs, or None when at least
    one input of that transaction could not be resolved.
    """

    block: BtcBlockData
    spent: dict[str, list[SpentOutput] | None] = field(default_factory=dict)


class BtcStrategy(ChainStrategy):
    """Bitcoin leaves of the ingestion loop."""

    chain = CHAIN_BTC

    def __init__(self, client: BtcClient, resolve_inputs: bool = False) -> None:
        super().__init__(client)
        self.resolve_inputs = resolve_inputs

    def repository(self, session: AsyncSession) -> BtcRepository:
        return BtcRepository(session)

    async def resolve_block_hash(self, height: int) -> str | None:
        return await self.client.block_hash(height)

    async def fetch_block(self, height: int, block_hash: str) -> BtcBlockBundle | None:
        block = await self.client.block_at(block_hash, include_transactions=True)
        if block is None:
            return None

        bundle = BtcBlockBundle(block=block)
        if self.resolve_inputs:
            await self._resolve_spent_outputs(bundle)
        return bundle

    def parent_hash(self, block: BtcBlockBundle) -> str | None:
        return block.block.previous_hash

    async def stored_block_hash(self, session: AsyncSession, height: int) -> str | None:
        stored = await self.repository(session).get_block_by_height(height)
        return stored.block_hash if stored else None

    async def _resolve_spent_outputs(self, bundle: BtcBlockBundle) -> None:
        """
        Look up the previous output of every non-coinbase input.

        Transactions of the same block are resolved locally, others with
        one getrawtransaction call per distinct txid.
        """
        known: dict[str, BtcTransactionData] = {
            tx.txid: tx for tx in bundle.block.transactions
        }

        for tx in bundle.block.transactions:
            if tx.is_coinbase:
                continue

            spent: list[SpentOutput] | None = []
            for vin in tx.vin:
                prev_txid = vin.get("txid")
                prev_index = vin.get("vout")
                prev = known.get(prev_txid)
                if prev is None and prev_txid:
                    prev = await self.client.transaction(prev_txid)
                    if prev is not None:
                        known[prev_txid] = prev

                value = prev.output_value(prev_index) if prev else None
                if value is None:
                    logger.warning(
                        f"[BTC Indexer] Cannot resolve input {prev_txid}:{prev_index} "
                        f"of {tx.txid}, input value left unavailable"
                    )
                    spent = None
                    break

                spent.append(
                    SpentOutput(
                        value=to_satoshi(value),
                        addresses=prev.output_addresses(prev_index),
                    )
                )

            bundle.spent[tx.txid] = spent

    async def persist_block(self, session: AsyncSession, block: BtcBlockBundle) -> int:
        repo = self.repository(session)
        data = block.block
        block_time = datetime.fromtimestamp(data.time, tz=UTC)

        await repo.save_block(
            block_hash=data.hash,
            block_height=data.height,
            block_time=block_time,
            previous_block_hash=data.previous_hash,
            difficulty=data.difficulty,
            nonce=data.nonce,
            merkle_root=data.merkle_root,
            size=data.size,
            weight=data.weight,
            transaction_count=data.tx_count,
        )

        for tx in data.transactions:
            await self._persist_transaction(repo, data, block_time, tx, block.spent.get(tx.txid))

        return len(data.transactions)

    async def _persist_transaction(
        self,
        repo: BtcRepository,
        block: BtcBlockData,
        block_time: datetime,
        tx: BtcTransactionData,
        spent: list[SpentOutput] | None,
    ) -> None:
        """Write one transaction and its address links."""
        # Aggregate outputs paying the same address
        received: dict[str, int] = defaultdict(int)
        total_output = 0
        for output in tx.vout:
            value = to_satoshi(output.get("value", 0))
            total_output += value
            for address in extract_output_addresses(output):
                received[address] += value

        total_input = None
        fee = None
        sent: dict[str, int] = defaultdict(int)
        if spent is not None and not tx.is_coinbase:
            total_input = sum(item.value for item in spent)
            fee = total_input - total_output
            for item in spent:
                for address in item.addresses:
                    sent[address] += item.value

        await repo.save_transaction(
            tx_hash=tx.txid,
            block_hash=block.hash,
            block_height=block.height,
            block_time=block_time,
            size=tx.size,
            virtual_size=tx.vsize,
            weight=tx.weight,
            version=tx.version,
            locktime=tx.locktime,
            inputs=json_safe(tx.vin),
            outputs=json_safe(tx.vout),
            is_coinbase=tx.is_coinbase,
            total_input_value=total_input,
            total_output_value=total_output,
            fee=fee,
        )

        for direction, amounts in ((DIRECTION_OUTPUT, received), (DIRECTION_INPUT, sent)):
            for address, amount in amounts.items():
                await repo.save_address_transaction(
                    address=address,
                    tx_hash=tx.txid,
                    block_height=block.height,
                    direction=direction,
                    amount=amount,
                )
