"""
Bitcoin Core JSON-RPC client.

Talks to a bitcoind node over HTTP with basic auth. Amounts are parsed
as Decimal so satoshi conversion is exact.
"""

import functools
import itertools
import json
from decimal import Decimal
from typing import Any

import aiohttp
from loguru import logger

from chain_indexer.config.constants import (
    BTC_NOT_FOUND_CODES,
    BTC_VERBOSITY_FULL,
    BTC_VERBOSITY_TXIDS,
    CHAIN_BTC,
    RPC_TIMEOUT,
)
from chain_indexer.services.chain_client.base import ChainClient
from chain_indexer.services.chain_client.types import (
    BtcBlockData,
    BtcTransactionData,
)
from chain_indexer.services.rpc_retry import RetryPolicy
from chain_indexer.utils.exceptions import ProtocolError, TransientRemoteError

_decimal_loads = functools.partial(json.loads, parse_float=Decimal)


class BtcClient(ChainClient):
    """
    Bitcoin RPC client.

    Uses:
    - getblockcount / getblockhash for tip and height lookups
    - getblock (verbosity 1 or 2) for blocks
    - getrawtransaction (verbose) for single transactions
    """

    chain = CHAIN_BTC

    def __init__(
        self,
        rpc_url: str,
        rpc_user: str,
        rpc_password: str,
        retry_policy: RetryPolicy,
        timeout: float = RPC_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """
        Initialize client.

        Args:
            rpc_url: Node RPC endpoint
            rpc_user: RPC username
            rpc_password: RPC password
            retry_policy: Retry schedule for every call
            timeout: Total HTTP timeout per attempt (seconds)
            session: Optional shared aiohttp session
        """
        super().__init__(retry_policy)
        self.rpc_url = rpc_url
        self._auth = aiohttp.BasicAuth(rpc_user, rpc_password)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._request_ids = itertools.count(1)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _rpc_call(self, method: str, params: list | None = None) -> Any:
        """
        Make JSON-RPC call.

        Args:
            method: RPC method name
            params: RPC parameters

        Returns:
            Result, or None when the node reports the object as not found
        """
        payload = {
            "jsonrpc": "1.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params or [],
        }

        async def attempt() -> Any:
            session = await self._get_session()
            try:
                async with session.post(
                    self.rpc_url,
                    json=payload,
                    auth=self._auth,
                    timeout=self._timeout,
                ) as response:
                    status = response.status
                    body = await response.text()
            except (aiohttp.ClientError, TimeoutError) as e:
                raise TransientRemoteError(f"{method}: {type(e).__name__}: {e}") from e

            return self._parse_response(method, status, body)

        return await self._call(attempt, method)

    @staticmethod
    def _parse_response(method: str, status: int, body: str) -> Any:
        """Map an HTTP response onto result / None / error."""
        try:
            data = _decimal_loads(body) if body else None
        except ValueError:
            data = None

        if not isinstance(data, dict):
            # bitcoind always answers RPC errors with a JSON body,
            # so a bare 5xx/429 is the transport or a proxy failing
            if status >= 500 or status == 429:
                raise TransientRemoteError(f"{method}: HTTP {status}")
            raise ProtocolError(f"{method}: unexpected HTTP {status} response", code=status)

        error = data.get("error")
        if error:
            code = error.get("code")
            if code in BTC_NOT_FOUND_CODES:
                logger.debug(f"[BTC Client] {method} not found: {error.get('message')}")
                return None
            raise ProtocolError(f"BTC RPC error: {error.get('message')}", code=code)

        return data.get("result")

    async def latest_height(self) -> int:
        """Get block count (tip height)."""
        return int(await self._rpc_call("getblockcount"))

    async def block_hash(self, height: int) -> str | None:
        """Get block hash by height."""
        return await self._rpc_call("getblockhash", [height])

    async def block_at(
        self, height_or_hash: int | str, include_transactions: bool = True
    ) -> BtcBlockData | None:
        """
        Get block by height or hash.

        Args:
            height_or_hash: Block height or block hash
            include_transactions: Decode full transactions (verbosity 2)

        Returns:
            Block or None if the node has no such block
        """
        if isinstance(height_or_hash, int):
            block_hash = await self.block_hash(height_or_hash)
            if block_hash is None:
                return None
        else:
            block_hash = height_or_hash

        verbosity = BTC_VERBOSITY_FULL if include_transactions else BTC_VERBOSITY_TXIDS
        raw = await self._rpc_call("getblock", [block_hash, verbosity])
        if raw is None:
            return None
        return self._to_block(raw)

    async def transaction(
        self, tx_hash: str, block_hash: str | None = None
    ) -> BtcTransactionData | None:
        """Get decoded raw transaction."""
        params: list[Any] = [tx_hash, True]
        if block_hash:
            params.append(block_hash)

        raw = await self._rpc_call("getrawtransaction", params)
        if raw is None:
            return None
        return self._to_transaction(raw)

    @classmethod
    def _to_block(cls, raw: dict[str, Any]) -> BtcBlockData:
        """Normalize getblock output."""
        entries = raw.get("tx") or []
        transactions = [cls._to_transaction(tx) for tx in entries if isinstance(tx, dict)]
        txids = [tx if isinstance(tx, str) else tx["txid"] for tx in entries]
        difficulty = raw.get("difficulty")

        return BtcBlockData(
            hash=raw["hash"],
            height=int(raw["height"]),
            previous_hash=raw.get("previousblockhash"),
            time=int(raw["time"]),
            difficulty=Decimal(str(difficulty)) if difficulty is not None else None,
            nonce=raw.get("nonce"),
            merkle_root=raw.get("merkleroot"),
            size=raw.get("size"),
            weight=raw.get("weight"),
            tx_count=int(raw.get("nTx", len(entries))),
            transactions=transactions,
            txids=txids,
        )

    @staticmethod
    def _to_transaction(raw: dict[str, Any]) -> BtcTransactionData:
        """Normalize a verbose transaction."""
        return BtcTransactionData(
            txid=raw["txid"],
            hash=raw.get("hash", raw["txid"]),
            version=int(raw.get("version", 0)),
            size=int(raw.get("size", 0)),
            vsize=int(raw.get("vsize", raw.get("size", 0))),
            weight=int(raw.get("weight", 0)),
            locktime=int(raw.get("locktime", 0)),
            vin=list(raw.get("vin") or []),
            vout=list(raw.get("vout") or []),
        )
