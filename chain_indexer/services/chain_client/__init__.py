"""
Chain clients.

Capability-typed adapters over each chain's node RPC:
- BtcClient: Bitcoin Core JSON-RPC over aiohttp
- EthClient: Ethereum JSON-RPC over AsyncWeb3
"""

from .base import ChainClient
from .btc_client import BtcClient
from .eth_client import EthClient
from .types import (
    BtcBlockData,
    BtcTransactionData,
    EthBlockData,
    EthLogEntry,
    EthReceiptData,
    EthTransactionData,
    TokenTransfer,
)

__all__ = [
    "ChainClient",
    "BtcClient",
    "EthClient",
    "BtcBlockData",
    "BtcTransactionData",
    "EthBlockData",
    "EthLogEntry",
    "EthReceiptData",
    "EthTransactionData",
    "TokenTransfer",
]
