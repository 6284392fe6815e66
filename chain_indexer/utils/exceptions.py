"""
Indexer exception taxonomy.

Defines categorized exception types for proper error handling:
- Chain client errors (transient, unavailable, protocol)
- Storage errors
- Chain state errors (block not served yet, reorgs)

"Not found" answers from a node are not errors: clients return None.
"""


class IndexerError(Exception):
    """Base exception for the indexer."""


class ChainClientError(IndexerError):
    """Base exception for chain node RPC failures."""


class TransientRemoteError(ChainClientError):
    """Network failure or timeout talking to a node. Safe to retry."""


class RemoteUnavailableError(ChainClientError):
    """Node still unreachable after the retry policy was exhausted."""


class ProtocolError(ChainClientError):
    """Node answered with a well-formed error response. Never retried."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class ChainUnavailableError(IndexerError):
    """Start-time liveness check failed."""


class StorageError(IndexerError):
    """Persisting or reading indexed data failed."""


class BlockNotAvailableError(IndexerError):
    """Node does not serve a block for a height below its reported tip yet."""

    def __init__(self, chain: str, height: int) -> None:
        super().__init__(f"{chain} block {height} not available from node")
        self.chain = chain
        self.height = height


class ChainReorgError(IndexerError):
    """Incoming block does not extend the locally stored chain."""

    def __init__(
        self,
        chain: str,
        height: int,
        expected_parent: str | None,
        actual_parent: str | None,
    ) -> None:
        super().__init__(
            f"{chain} reorg at height {height}: stored parent "
            f"{expected_parent}, node parent {actual_parent}"
        )
        self.chain = chain
        self.height = height
        self.expected_parent = expected_parent
        self.actual_parent = actual_parent


class ReorgTooDeepError(ChainReorgError):
    """No common ancestor found within the configured reorg depth."""


# Exception categories based on handling strategy

# Retried inside the chain client
RETRYABLE = (
    TransientRemoteError,
)

# Abort the current batch, back off, resume from the committed cursor
BATCH_ABORTING = (
    ChainClientError,
    StorageError,
    BlockNotAvailableError,
    ChainReorgError,
)
