"""
Normalized chain data.

Value objects returned by the chain clients. Hashes and account-chain
addresses are lower-case 0x-prefixed hex; BTC amounts are Decimal coins
as reported by the node, account-chain amounts are integer wei.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass
class BtcTransactionData:
    """Bitcoin transaction as returned by getrawtransaction / getblock v2."""

    txid: str
    hash: str
    version: int
    size: int
    vsize: int
    weight: int
    locktime: int
    vin: list[dict[str, Any]]
    vout: list[dict[str, Any]]

    @property
    def is_coinbase(self) -> bool:
        """Coinbase transactions carry a single input without a prevout."""
        return bool(self.vin) and "coinbase" in self.vin[0]

    def output_value(self, n: int) -> Decimal | None:
        """Value of output ``n`` in coins, None if absent."""
        for output in self.vout:
            if output.get("n") == n:
                return Decimal(str(output.get("value", 0)))
        return None

    def output_addresses(self, n: int) -> list[str]:
        """Addresses owning output ``n``."""
        for output in self.vout:
            if output.get("n") == n:
                return extract_output_addresses(output)
        return []


@dataclass
class BtcBlockData:
    """Bitcoin block; ``transactions`` is empty when fetched without them."""

    hash: str
    height: int
    previous_hash: str | None
    time: int
    difficulty: Decimal | None
    nonce: int | None
    merkle_root: str | None
    size: int | None
    weight: int | None
    tx_count: int
    transactions: list[BtcTransactionData] = field(default_factory=list)
    txids: list[str] = field(default_factory=list)


@dataclass
class EthBlockData:
    """Ethereum block with transaction hashes."""

    hash: str
    number: int
    parent_hash: str | None
    timestamp: int
    nonce: str | None
    difficulty: int | None
    size: int | None
    gas_limit: int
    gas_used: int
    miner: str | None
    extra_data: str | None
    transactions: list[str] = field(default_factory=list)


@dataclass
class EthTransactionData:
    """Ethereum transaction."""

    hash: str
    block_hash: str | None
    block_number: int | None
    from_address: str
    to_address: str | None
    value: int
    gas_price: int | None
    max_fee_per_gas: int | None
    max_priority_fee_per_gas: int | None
    gas_limit: int
    nonce: int
    transaction_index: int | None
    input_data: str | None


@dataclass
class EthLogEntry:
    """Single event log emitted during a transaction."""

    address: str
    topics: list[str]
    data: str
    log_index: int


@dataclass
class EthReceiptData:
    """Ethereum transaction receipt."""

    transaction_hash: str
    status: int | None
    gas_used: int
    contract_address: str | None
    logs: list[EthLogEntry] = field(default_factory=list)


@dataclass(frozen=True)
class TokenTransfer:
    """Decoded ERC-20 Transfer event."""

    token_address: str
    from_address: str
    to_address: str
    value: int
    log_index: int


def extract_output_addresses(output: dict[str, Any]) -> list[str]:
    """Extract owning addresses from a transaction output."""
    script = output.get("scriptPubKey") or {}
    addresses: list[str] = []

    if script.get("address"):
        addresses.append(script["address"])

    # Older nodes report a list instead of a single address
    for address in script.get("addresses") or []:
        if address not in addresses:
            addresses.append(address)

    return addresses
