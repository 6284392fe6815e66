"""
Ingestion engine.

One generic engine per chain, parameterized by a chain strategy:
- BtcStrategy: Bitcoin blocks, transactions and address links
- EthStrategy: Ethereum blocks, transactions, balances and token transfers
"""

from .btc_strategy import BtcStrategy
from .engine import IngestionEngine
from .eth_strategy import EthStrategy
from .state import BatchResult, EngineConfig, EngineState
from .strategy import ChainStrategy

__all__ = [
    "IngestionEngine",
    "ChainStrategy",
    "BtcStrategy",
    "EthStrategy",
    "BatchResult",
    "EngineConfig",
    "EngineState",
]
