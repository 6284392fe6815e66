"""
Chain client interface.

Every call is remote and may fail transiently (TransientRemoteError,
retried internally, surfacing as RemoteUnavailableError once exhausted)
or with a node-side error (ProtocolError). "Not found" is returned as
None and is never an error.
"""

from abc import ABC, abstractmethod
from typing import Any

from loguru import logger

from chain_indexer.services.rpc_retry import RetryPolicy, execute_with_retry
from chain_indexer.utils.exceptions import (
    ChainClientError,
    RemoteUnavailableError,
    TransientRemoteError,
)


class ChainClient(ABC):
    """Capability interface over one chain's node RPC."""

    chain: str

    def __init__(self, retry_policy: RetryPolicy) -> None:
        self.retry_policy = retry_policy

    @abstractmethod
    async def latest_height(self) -> int:
        """Current tip height known to the node."""

    @abstractmethod
    async def block_at(
        self, height_or_hash: int | str, include_transactions: bool = True
    ) -> Any | None:
        """Fetch block by height or hash."""

    @abstractmethod
    async def transaction(self, tx_hash: str) -> Any | None:
        """Fetch single transaction."""

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""

    async def ping(self) -> bool:
        """
        Liveness check.

        Returns:
            True if the node answered a latest-height call
        """
        try:
            height = await self.latest_height()
        except ChainClientError as e:
            logger.error(f"[{self.chain} Client] RPC connection failed: {e}")
            return False

        logger.info(f"[{self.chain} Client] RPC connection successful (tip {height})")
        return True

    async def _call(self, operation, operation_name: str):
        """
        Run one RPC with the retry policy.

        Exhausted transient failures become RemoteUnavailableError;
        protocol errors pass through untouched.
        """
        try:
            return await execute_with_retry(
                operation,
                self.retry_policy,
                operation_name=f"{self.chain} {operation_name}",
            )
        except TransientRemoteError as e:
            raise RemoteUnavailableError(
                f"{self.chain} {operation_name} unavailable: {e}"
            ) from e
