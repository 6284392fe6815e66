"""
Ethereum JSON-RPC client.

Wraps AsyncWeb3 and normalizes its AttributeDict/HexBytes answers into
plain value objects with lower-case hex strings.
"""

from typing import Any

import aiohttp
from web3 import AsyncWeb3, Web3
from web3.exceptions import (
    BlockNotFound,
    ProviderConnectionError,
    TransactionNotFound,
    Web3Exception,
)
from web3.providers.rpc import AsyncHTTPProvider

from chain_indexer.config.constants import CHAIN_ETH, RPC_TIMEOUT
from chain_indexer.services.chain_client.base import ChainClient
from chain_indexer.services.chain_client.types import (
    EthBlockData,
    EthLogEntry,
    EthReceiptData,
    EthTransactionData,
)
from chain_indexer.services.rpc_retry import RetryPolicy
from chain_indexer.utils.exceptions import ProtocolError, TransientRemoteError


def _hex(value: Any) -> str | None:
    """Render bytes/HexBytes/str as lower-case 0x hex."""
    if value is None:
        return None
    if isinstance(value, str):
        return value.lower() if value.startswith("0x") else f"0x{value.lower()}"
    return Web3.to_hex(value).lower()


def _address(value: str | None) -> str | None:
    """Lower-case canonical address."""
    return value.lower() if value else None


class EthClient(ChainClient):
    """
    Ethereum RPC client.

    Features:
    - Block, transaction, receipt and balance lookups
    - Not-found answers mapped to None
    - Connection failures classified as transient
    """

    chain = CHAIN_ETH

    def __init__(
        self,
        rpc_url: str,
        retry_policy: RetryPolicy,
        timeout: float = RPC_TIMEOUT,
        web3: AsyncWeb3 | None = None,
    ) -> None:
        """
        Initialize client.

        Args:
            rpc_url: Node RPC endpoint
            retry_policy: Retry schedule for every call
            timeout: HTTP timeout per attempt (seconds)
            web3: Optional preconfigured AsyncWeb3 instance
        """
        super().__init__(retry_policy)
        self.rpc_url = rpc_url
        self.web3 = web3 or AsyncWeb3(
            AsyncHTTPProvider(
                rpc_url,
                request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout)},
                # retries are owned by the RetryPolicy
                exception_retry_configuration=None,
            )
        )

    async def close(self) -> None:
        """Disconnect provider session."""
        provider = self.web3.provider
        if hasattr(provider, "disconnect"):
            await provider.disconnect()

    async def _rpc_call(self, operation_name: str, coro_factory) -> Any:
        """Run a web3 call, classifying failures."""

        async def attempt() -> Any:
            try:
                return await coro_factory()
            except (BlockNotFound, TransactionNotFound):
                return None
            except ProviderConnectionError as e:
                raise TransientRemoteError(f"{operation_name}: {e}") from e
            except (aiohttp.ClientError, TimeoutError, ConnectionError) as e:
                raise TransientRemoteError(
                    f"{operation_name}: {type(e).__name__}: {e}"
                ) from e
            except (Web3Exception, ValueError) as e:
                raise ProtocolError(f"ETH RPC error in {operation_name}: {e}") from e

        return await self._call(attempt, operation_name)

    async def latest_height(self) -> int:
        """Get current block number."""
        return int(
            await self._rpc_call("eth_blockNumber", lambda: self.web3.eth.block_number)
        )

    async def block_at(
        self, height_or_hash: int | str, include_transactions: bool = True
    ) -> EthBlockData | None:
        """
        Get block by number or hash.

        Transactions are always returned as hashes; details are fetched
        per transaction together with their receipts.
        """
        raw = await self._rpc_call(
            "eth_getBlock",
            lambda: self.web3.eth.get_block(height_or_hash, full_transactions=False),
        )
        if raw is None:
            return None

        return EthBlockData(
            hash=_hex(raw["hash"]),
            number=int(raw["number"]),
            parent_hash=_hex(raw.get("parentHash")),
            timestamp=int(raw["timestamp"]),
            nonce=_hex(raw.get("nonce")),
            difficulty=raw.get("difficulty"),
            size=raw.get("size"),
            gas_limit=int(raw.get("gasLimit", 0)),
            gas_used=int(raw.get("gasUsed", 0)),
            miner=_address(raw.get("miner")),
            extra_data=_hex(raw.get("extraData")),
            transactions=[_hex(tx) for tx in raw.get("transactions", [])]
            if include_transactions
            else [],
        )

    async def transaction(self, tx_hash: str) -> EthTransactionData | None:
        """Get transaction by hash."""
        raw = await self._rpc_call(
            "eth_getTransactionByHash",
            lambda: self.web3.eth.get_transaction(tx_hash),
        )
        if raw is None:
            return None

        return EthTransactionData(
            hash=_hex(raw["hash"]),
            block_hash=_hex(raw.get("blockHash")),
            block_number=raw.get("blockNumber"),
            from_address=_address(raw["from"]),
            to_address=_address(raw.get("to")),
            value=int(raw.get("value", 0)),
            gas_price=raw.get("gasPrice"),
            max_fee_per_gas=raw.get("maxFeePerGas"),
            max_priority_fee_per_gas=raw.get("maxPriorityFeePerGas"),
            gas_limit=int(raw.get("gas", 0)),
            nonce=int(raw.get("nonce", 0)),
            transaction_index=raw.get("transactionIndex"),
            input_data=_hex(raw.get("input")),
        )

    async def receipt(self, tx_hash: str) -> EthReceiptData | None:
        """Get transaction receipt (status, gas used, logs)."""
        raw = await self._rpc_call(
            "eth_getTransactionReceipt",
            lambda: self.web3.eth.get_transaction_receipt(tx_hash),
        )
        if raw is None:
            return None

        logs = [
            EthLogEntry(
                address=_address(log["address"]),
                topics=[_hex(topic) for topic in log.get("topics", [])],
                data=_hex(log.get("data")) or "0x",
                log_index=int(log["logIndex"]),
            )
            for log in raw.get("logs", [])
        ]

        return EthReceiptData(
            transaction_hash=_hex(raw["transactionHash"]),
            status=raw.get("status"),
            gas_used=int(raw.get("gasUsed", 0)),
            contract_address=_address(raw.get("contractAddress")),
            logs=logs,
        )

    async def balance(self, address: str, at_height: int) -> int:
        """Get native balance of address at block height (wei)."""
        checksum = Web3.to_checksum_address(address)
        return int(
            await self._rpc_call(
                "eth_getBalance",
                lambda: self.web3.eth.get_balance(checksum, block_identifier=at_height),
            )
        )
