"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from chain_indexer.models.base import Base

# Bitcoin
from chain_indexer.models.btc import BtcAddressTransaction, BtcBlock, BtcTransaction

# Ethereum
from chain_indexer.models.eth import (
    EthBalance,
    EthBlock,
    EthTokenTransfer,
    EthTransaction,
)

# Cursor
from chain_indexer.models.sync_status import SyncStatus

__all__ = [
    # Base
    "Base",
    # Bitcoin
    "BtcBlock",
    "BtcTransaction",
    "BtcAddressTransaction",
    # Ethereum
    "EthBlock",
    "EthTransaction",
    "EthBalance",
    "EthTokenTransfer",
    # Cursor
    "SyncStatus",
]
