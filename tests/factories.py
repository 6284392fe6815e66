"""
Test data builders.

Deterministic blocks and in-memory chain nodes exposing AsyncMock clients.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

from chain_indexer.services.chain_client.types import (
    BtcBlockData,
    BtcTransactionData,
    EthBlockData,
    EthLogEntry,
    EthReceiptData,
    EthTransactionData,
)
from chain_indexer.services.token_transfer_decoder import TRANSFER_EVENT_TOPIC

MINER_ADDRESS = "bc1qminer0000000000000000000000000000000"
PAYEE_ADDRESS = "bc1qpayee0000000000000000000000000000000"

ETH_SENDER = "0x1111111111111111111111111111111111111111"
ETH_RECEIVER = "0x2222222222222222222222222222222222222222"
ETH_TOKEN = "0x3333333333333333333333333333333333333333"


# ============================================================================
# BITCOIN
# ============================================================================


def btc_hash(height: int, fork: str = "a") -> str:
    """Deterministic 64-char block hash for a height on a fork."""
    return f"{fork}{height:063x}"


def make_btc_block(height: int, previous_hash: str | None, fork: str = "a") -> BtcBlockData:
    """Block with a coinbase and one payment spending the coinbase of height-1."""
    coinbase = BtcTransactionData(
        txid=f"c{fork}{height:062x}",
        hash=f"c{fork}{height:062x}",
        version=2,
        size=150,
        vsize=150,
        weight=600,
        locktime=0,
        vin=[{"coinbase": "03a08601", "sequence": 4294967295}],
        vout=[
            {
                "value": Decimal("6.25000000"),
                "n": 0,
                "scriptPubKey": {"address": MINER_ADDRESS, "type": "witness_v0_keyhash"},
            }
        ],
    )
    payment = BtcTransactionData(
        txid=f"d{fork}{height:062x}",
        hash=f"d{fork}{height:062x}",
        version=2,
        size=225,
        vsize=144,
        weight=573,
        locktime=0,
        vin=[{"txid": f"c{fork}{height - 1:062x}", "vout": 0, "sequence": 4294967293}],
        vout=[
            {
                "value": Decimal("1.00000000"),
                "n": 0,
                "scriptPubKey": {"address": PAYEE_ADDRESS},
            },
            {
                "value": Decimal("0.50000000"),
                "n": 1,
                "scriptPubKey": {"address": PAYEE_ADDRESS},
            },
            {
                "value": Decimal("4.74990000"),
                "n": 2,
                "scriptPubKey": {"address": MINER_ADDRESS},
            },
        ],
    )
    return BtcBlockData(
        hash=btc_hash(height, fork),
        height=height,
        previous_hash=previous_hash,
        time=1_700_000_000 + height * 600,
        difficulty=Decimal("1.5"),
        nonce=height,
        merkle_root=f"{height:064x}",
        size=1000,
        weight=4000,
        tx_count=2,
        transactions=[coinbase, payment],
        txids=[coinbase.txid, payment.txid],
    )


class FakeBtcNode:
    """In-memory Bitcoin node serving blocks through an AsyncMock client."""

    def __init__(self) -> None:
        self.blocks: dict[int, BtcBlockData] = {}
        self.client = AsyncMock()
        self.client.chain = "BTC"
        self.client.ping.return_value = True
        self.client.latest_height.side_effect = lambda: self.tip
        self.client.block_hash.side_effect = self._block_hash
        self.client.block_at.side_effect = self._block_at
        self.client.transaction.side_effect = self._transaction

    @property
    def tip(self) -> int:
        return max(self.blocks)

    def build(self, start: int, end: int, fork: str = "a") -> None:
        """Add (or replace) heights start..end on a fork."""
        for height in range(start, end + 1):
            parent = self.blocks.get(height - 1)
            previous = parent.hash if parent else btc_hash(height - 1, fork)
            self.blocks[height] = make_btc_block(height, previous, fork)

    def _block_hash(self, height):
        block = self.blocks.get(height)
        return block.hash if block else None

    def _block_at(self, height_or_hash, include_transactions=True):
        for block in self.blocks.values():
            if height_or_hash in (block.hash, block.height):
                return block
        return None

    def _transaction(self, txid, block_hash=None):
        for block in self.blocks.values():
            for tx in block.transactions:
                if tx.txid == txid:
                    return tx
        return None


# ============================================================================
# ETHEREUM
# ============================================================================


def eth_hash(height: int, fork: str = "a", kind: str = "b") -> str:
    """Deterministic 0x-prefixed 32-byte hash."""
    return f"0x{kind}{fork}{height:062x}"


def address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte topic."""
    return "0x" + "0" * 24 + address[2:]


def transfer_log(value: int, log_index: int = 0) -> EthLogEntry:
    """ERC-20 Transfer log from ETH_SENDER to ETH_RECEIVER."""
    return EthLogEntry(
        address=ETH_TOKEN,
        topics=[TRANSFER_EVENT_TOPIC, address_topic(ETH_SENDER), address_topic(ETH_RECEIVER)],
        data=f"0x{value:064x}",
        log_index=log_index,
    )


class FakeEthNode:
    """In-memory Ethereum node; one token-transferring transaction per block."""

    def __init__(self) -> None:
        self.blocks: dict[int, EthBlockData] = {}
        self.transactions: dict[str, EthTransactionData] = {}
        self.receipts: dict[str, EthReceiptData] = {}
        self.balances: dict[str, int] = {
            ETH_SENDER: 5_000,
            ETH_RECEIVER: 7_000,
            ETH_TOKEN: 0,
        }

        self.client = AsyncMock()
        self.client.chain = "ETH"
        self.client.ping.return_value = True
        self.client.latest_height.side_effect = lambda: max(self.blocks)
        self.client.block_at.side_effect = self._block_at
        self.client.transaction.side_effect = lambda tx_hash: self.transactions.get(tx_hash)
        self.client.receipt.side_effect = lambda tx_hash: self.receipts.get(tx_hash)
        self.client.balance.side_effect = lambda address, at_height: self.balances[address]

    def build(self, start: int, end: int, fork: str = "a") -> None:
        for height in range(start, end + 1):
            parent = self.blocks.get(height - 1)
            block_hash = eth_hash(height, fork)
            tx_hash = eth_hash(height, fork, kind="f")

            self.transactions[tx_hash] = EthTransactionData(
                hash=tx_hash,
                block_hash=block_hash,
                block_number=height,
                from_address=ETH_SENDER,
                to_address=ETH_TOKEN,
                value=0,
                gas_price=20,
                max_fee_per_gas=None,
                max_priority_fee_per_gas=None,
                gas_limit=60_000,
                nonce=height,
                transaction_index=0,
                input_data="0xa9059cbb",
            )
            self.receipts[tx_hash] = EthReceiptData(
                transaction_hash=tx_hash,
                status=1,
                gas_used=51_000,
                contract_address=None,
                logs=[transfer_log(250)],
            )
            self.blocks[height] = EthBlockData(
                hash=block_hash,
                number=height,
                parent_hash=parent.hash if parent else eth_hash(height - 1, fork),
                timestamp=1_700_000_000 + height * 12,
                nonce="0x0000000000000000",
                difficulty=0,
                size=600,
                gas_limit=30_000_000,
                gas_used=51_000,
                miner="0x4444444444444444444444444444444444444444",
                extra_data="0x",
                transactions=[tx_hash],
            )

    def _block_at(self, height_or_hash, include_transactions=True):
        for block in self.blocks.values():
            if height_or_hash in (block.hash, block.number):
                return block
        return None
