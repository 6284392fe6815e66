"""
Application constants.

Centralized constants for the indexer.
"""

# ========================================================================
# CHAINS
# ========================================================================

CHAIN_BTC = "BTC"
CHAIN_ETH = "ETH"

# Satoshis per bitcoin
SATOSHI_PER_BTC = 100_000_000

# ========================================================================
# INDEXER LOOP DEFAULTS
# ========================================================================

DEFAULT_POLL_INTERVAL_SECONDS = 10.0  # Sleep once caught up with the tip
DEFAULT_MAX_BLOCKS_PER_BATCH = 100  # Heights per batch window
DEFAULT_MAX_REORG_DEPTH = 6  # Deepest automatic rollback
DEFAULT_ERROR_BACKOFF_SECONDS = 5.0  # Sleep after a failed batch

# ========================================================================
# RPC CONSTANTS
# ========================================================================

RPC_TIMEOUT = 30.0  # HTTP timeout per RPC call (seconds)
RPC_MAX_ATTEMPTS = 3  # Attempts per RPC call, first one included
RPC_INITIAL_DELAY = 1.0  # First retry delay (seconds)
RPC_BACKOFF_MULTIPLIER = 2.0
RPC_MAX_DELAY = 30.0  # Retry delay cap (seconds)

# Bitcoin Core RPC error codes
BTC_RPC_INVALID_ADDRESS_OR_KEY = -5  # block / transaction not found
BTC_RPC_INVALID_PARAMETER = -8  # block height out of range
BTC_NOT_FOUND_CODES = frozenset(
    {BTC_RPC_INVALID_ADDRESS_OR_KEY, BTC_RPC_INVALID_PARAMETER}
)

# getblock verbosity: 1 = txids only, 2 = full transactions
BTC_VERBOSITY_TXIDS = 1
BTC_VERBOSITY_FULL = 2

# ========================================================================
# TOKEN TRANSFERS
# ========================================================================

TRANSFER_EVENT_SIGNATURE = "Transfer(address,address,uint256)"
TRANSFER_EVENT_TOPIC_COUNT = 3  # signature + indexed from + indexed to
