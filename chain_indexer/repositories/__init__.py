"""
Repositories.

Data access layer. Repositories never commit; the caller owns the
transaction.
"""

from chain_indexer.repositories.base import BaseRepository
from chain_indexer.repositories.btc_repository import BtcRepository
from chain_indexer.repositories.eth_repository import EthRepository
from chain_indexer.repositories.sync_status_repository import SyncStatusRepository

__all__ = [
    "BaseRepository",
    "BtcRepository",
    "EthRepository",
    "SyncStatusRepository",
]
