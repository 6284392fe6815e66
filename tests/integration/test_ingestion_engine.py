"""
Integration tests for the ingestion engine.

Engines run against in-memory nodes (AsyncMock clients) and a SQLite
database. Covers batching, resume, atomicity, reorg rollback and the
start/stop lifecycle.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from chain_indexer.models import (
    BtcAddressTransaction,
    BtcBlock,
    BtcTransaction,
    EthBalance,
    EthBlock,
    EthTokenTransfer,
    EthTransaction,
)
from chain_indexer.repositories import (
    BtcRepository,
    EthRepository,
    SyncStatusRepository,
)
from chain_indexer.services.ingestion import (
    BtcStrategy,
    EngineConfig,
    EngineState,
    EthStrategy,
    IngestionEngine,
)
from chain_indexer.utils.exceptions import (
    BlockNotAvailableError,
    ChainUnavailableError,
    RemoteUnavailableError,
    ReorgTooDeepError,
    StorageError,
)
from tests.factories import (
    ETH_RECEIVER,
    ETH_SENDER,
    ETH_TOKEN,
    MINER_ADDRESS,
    PAYEE_ADDRESS,
    btc_hash,
)


def block_payment_txid(height: int, fork: str = "a") -> str:
    return f"d{fork}{height:062x}"


async def read_cursor(session_maker, chain):
    async with session_maker() as session:
        return await SyncStatusRepository(session).read(chain)


async def count_rows(session_maker, model):
    async with session_maker() as session:
        return await session.scalar(select(func.count()).select_from(model))


async def wait_for(predicate, timeout: float = 2.0) -> None:
    """Poll an async predicate until true."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not await predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def btc_engine(btc_node, session_maker, engine_config):
    return IngestionEngine(BtcStrategy(btc_node.client), session_maker, engine_config)


@pytest.fixture
def eth_engine(eth_node, session_maker, engine_config):
    return IngestionEngine(EthStrategy(eth_node.client), session_maker, engine_config)


class TestBatching:
    """Test batch windows and cursor progression."""

    @pytest.mark.asyncio
    async def test_start_100_tip_103_batch_2(self, btc_node, btc_engine, session_maker):
        """First batch ingests 101-102, second ingests 103 and clears syncing."""
        btc_node.build(95, 103)

        first = await btc_engine.run_once()

        assert (first.from_height, first.to_height) == (101, 102)
        assert first.indexed == 2
        cursor = await read_cursor(session_maker, "BTC")
        assert cursor.last_indexed_block == 102
        assert cursor.last_indexed_hash == btc_hash(102)
        assert cursor.is_syncing is True

        second = await btc_engine.run_once()

        assert (second.from_height, second.to_height) == (103, 103)
        assert second.caught_up is True
        cursor = await read_cursor(session_maker, "BTC")
        assert cursor.last_indexed_block == 103
        assert cursor.is_syncing is False

        third = await btc_engine.run_once()

        assert third.caught_up is True
        assert third.indexed == 0
        assert third.from_height is None

    @pytest.mark.asyncio
    async def test_btc_block_decomposition(self, btc_node, btc_engine, session_maker):
        btc_node.build(100, 101)

        await btc_engine.run_once()

        async with session_maker() as session:
            repo = BtcRepository(session)
            block = await repo.get_block_by_height(101)
            payment = await repo.get_transaction_by_hash(block_payment_txid(101))
            coinbase = await repo.get_transaction_by_hash(f"ca{101:062x}")
            payee_links, payee_total = await repo.get_address_links(PAYEE_ADDRESS)
            miner_links, _ = await repo.get_address_links(MINER_ADDRESS)

        assert block.previous_block_hash == btc_hash(100)
        assert block.transaction_count == 2
        assert payment.total_output_value == 624_990_000
        assert payment.total_input_value is None
        assert payment.fee is None
        assert payment.outputs[0]["value"] == "1.00000000"
        assert coinbase.is_coinbase is True
        assert coinbase.fee is None
        # Two outputs to the payee aggregate into one link
        assert payee_total == 1
        assert payee_links[0].amount == 150_000_000
        assert payee_links[0].direction == "output"
        assert {link.amount for link in miner_links} == {625_000_000, 474_990_000}

    @pytest.mark.asyncio
    async def test_btc_fee_with_input_resolution(self, btc_node, session_maker, engine_config):
        btc_node.build(100, 101)
        engine = IngestionEngine(
            BtcStrategy(btc_node.client, resolve_inputs=True), session_maker, engine_config
        )

        await engine.run_once()

        async with session_maker() as session:
            repo = BtcRepository(session)
            payment = await repo.get_transaction_by_hash(block_payment_txid(101))
            links, _ = await repo.get_address_links(MINER_ADDRESS)

        assert payment.total_input_value == 625_000_000
        assert payment.fee == 10_000
        assert {(link.direction, link.amount) for link in links} >= {("input", 625_000_000)}

    @pytest.mark.asyncio
    async def test_eth_block_decomposition(self, eth_node, eth_engine, session_maker):
        eth_node.build(100, 101)

        result = await eth_engine.run_once()

        assert result.indexed == 1
        async with session_maker() as session:
            repo = EthRepository(session)
            transfers, total = await repo.get_token_transfers(ETH_TOKEN)
            sender_balance = await repo.get_latest_balance(ETH_SENDER)
            txs, _ = await repo.get_address_transactions(ETH_SENDER)

        assert total == 1
        assert transfers[0].from_address == ETH_SENDER
        assert transfers[0].to_address == ETH_RECEIVER
        assert transfers[0].value == 250
        assert sender_balance.block_number == 101
        assert sender_balance.balance == 5_000
        assert txs[0].status == 1
        assert txs[0].gas_used == 51_000
        assert await count_rows(session_maker, EthBalance) == 2


class TestResume:
    """Test idempotent re-processing."""

    @pytest.mark.asyncio
    async def test_already_stored_block_is_skipped(self, btc_node, btc_engine, session_maker):
        """Cursor behind stored data: stored blocks only move the cursor."""
        btc_node.build(100, 102)
        await btc_engine.run_once()
        counts = [
            await count_rows(session_maker, model)
            for model in (BtcBlock, BtcTransaction, BtcAddressTransaction)
        ]

        async with session_maker() as session, session.begin():
            await SyncStatusRepository(session).rewind("BTC", 100, btc_hash(100))

        result = await btc_engine.run_once()

        assert result.skipped == 2
        assert result.indexed == 0
        assert (await read_cursor(session_maker, "BTC")).last_indexed_block == 102
        assert [
            await count_rows(session_maker, model)
            for model in (BtcBlock, BtcTransaction, BtcAddressTransaction)
        ] == counts

    @pytest.mark.asyncio
    async def test_missing_block_aborts_batch_after_committed_blocks(
        self, btc_node, session_maker
    ):
        """Node reports tip 103 but cannot serve 102: 101 stays committed."""
        btc_node.build(100, 103)
        del btc_node.blocks[102]
        engine = IngestionEngine(
            BtcStrategy(btc_node.client), session_maker, EngineConfig(start_height=100)
        )

        with pytest.raises(BlockNotAvailableError):
            await engine.run_once()

        assert (await read_cursor(session_maker, "BTC")).last_indexed_block == 101

    @pytest.mark.asyncio
    async def test_cursor_monotonic_across_failures(
        self, btc_node, btc_engine, session_maker
    ):
        """Every other hash lookup fails; the loop still only moves forward."""
        btc_node.build(100, 106)
        calls = 0

        def flaky_block_hash(height):
            nonlocal calls
            calls += 1
            if calls % 2 == 1:
                raise RemoteUnavailableError("node down")
            block = btc_node.blocks.get(height)
            return block.hash if block else None

        btc_node.client.block_hash.side_effect = flaky_block_hash

        observed = []
        run_batch = btc_engine.run_once

        async def recording_run_once():
            try:
                return await run_batch()
            finally:
                cursor = await read_cursor(session_maker, "BTC")
                if cursor is not None:
                    observed.append((cursor.last_indexed_block, cursor.last_indexed_hash))

        btc_engine.run_once = recording_run_once

        async def caught_up():
            return bool(observed) and observed[-1][0] == 106

        await btc_engine.start()
        await wait_for(caught_up, timeout=5.0)
        await btc_engine.stop()

        heights = [height for height, _ in observed]
        assert heights == sorted(heights)
        assert len(set(heights)) > 2
        for height, block_hash in observed:
            assert block_hash == btc_node.blocks[height].hash
        # Six failed lookups, each aborting a batch
        assert calls >= 12


class TestAtomicity:
    """Test all-or-nothing block writes."""

    @pytest.mark.asyncio
    async def test_failed_transfer_write_leaves_nothing(
        self, eth_node, eth_engine, session_maker, monkeypatch
    ):
        eth_node.build(100, 101)

        async def failing_save(self, *args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(EthRepository, "save_token_transfer", failing_save)

        with pytest.raises(StorageError):
            await eth_engine.run_once()

        assert await count_rows(session_maker, EthBlock) == 0
        assert await count_rows(session_maker, EthTransaction) == 0
        assert await count_rows(session_maker, EthTokenTransfer) == 0
        assert await count_rows(session_maker, EthBalance) == 0
        assert await read_cursor(session_maker, "ETH") is None


class TestReorg:
    """Test rollback to the common ancestor."""

    @pytest.mark.asyncio
    async def test_rollback_and_reingest(self, btc_node, session_maker):
        btc_node.build(100, 103)
        config = EngineConfig(start_height=100, max_blocks_per_batch=10, max_reorg_depth=3)
        engine = IngestionEngine(BtcStrategy(btc_node.client), session_maker, config)
        await engine.run_once()

        # Heights 102+ replaced by fork "b", one block longer
        btc_node.build(102, 104, fork="b")

        rolled = await engine.run_once()

        assert rolled.rolled_back_to == 101
        cursor = await read_cursor(session_maker, "BTC")
        assert cursor.last_indexed_block == 101
        assert cursor.last_indexed_hash == btc_hash(101)
        assert await count_rows(session_maker, BtcBlock) == 1

        result = await engine.run_once()

        assert result.indexed == 3
        async with session_maker() as session:
            repo = BtcRepository(session)
            assert (await repo.get_block_by_height(103)).block_hash == btc_hash(103, "b")
            assert await repo.get_transaction_by_hash(f"ca{102:062x}") is None
        assert (await read_cursor(session_maker, "BTC")).last_indexed_block == 104

    @pytest.mark.asyncio
    async def test_reorg_deeper_than_limit(self, btc_node, session_maker):
        btc_node.build(100, 103)
        config = EngineConfig(start_height=100, max_blocks_per_batch=10, max_reorg_depth=1)
        engine = IngestionEngine(BtcStrategy(btc_node.client), session_maker, config)
        await engine.run_once()

        btc_node.build(102, 104, fork="b")

        with pytest.raises(ReorgTooDeepError):
            await engine.run_once()

        assert await count_rows(session_maker, BtcBlock) == 3
        assert (await read_cursor(session_maker, "BTC")).last_indexed_block == 103


class TestLifecycle:
    """Test start/stop and the background loop."""

    @pytest.mark.asyncio
    async def test_start_fails_when_node_unreachable(self, btc_node, btc_engine):
        btc_node.client.ping.return_value = False

        with pytest.raises(ChainUnavailableError):
            await btc_engine.start()

        assert btc_engine.state == EngineState.STOPPED

    @pytest.mark.asyncio
    async def test_loop_catches_up_and_stops(self, btc_node, btc_engine, session_maker):
        btc_node.build(100, 105)

        await btc_engine.start()
        await btc_engine.start()  # no-op while running

        async def caught_up():
            cursor = await read_cursor(session_maker, "BTC")
            return cursor is not None and cursor.last_indexed_block == 105

        await wait_for(caught_up)
        await btc_engine.stop()
        await btc_engine.stop()  # no-op once stopped

        assert btc_engine.state == EngineState.STOPPED
        assert btc_engine.status["last_batch"]["caught_up"] is True
        assert (await read_cursor(session_maker, "BTC")).is_syncing is False

    @pytest.mark.asyncio
    async def test_errors_back_off_and_loop_survives(self, btc_node, btc_engine):
        btc_node.build(100, 101)
        failures = AsyncMock(side_effect=RemoteUnavailableError("node down"))
        btc_node.client.latest_height = failures

        await btc_engine.start()
        await asyncio.sleep(0.1)

        assert failures.await_count >= 2
        assert btc_engine.status["last_error"].startswith("RemoteUnavailableError")
        assert btc_engine.state in (EngineState.ERROR_BACKOFF, EngineState.IDLE, EngineState.BATCHING)

        await btc_engine.stop()

        assert btc_engine.state == EngineState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_wakes_poll_sleep(self, btc_node, session_maker):
        btc_node.build(100, 100)
        engine = IngestionEngine(
            BtcStrategy(btc_node.client),
            session_maker,
            EngineConfig(start_height=100, poll_interval=60.0),
        )

        await engine.start()
        await asyncio.sleep(0.05)
        await asyncio.wait_for(engine.stop(), timeout=1.0)

        assert engine.state == EngineState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_during_start_prevents_loop(self, btc_node, btc_engine):
        """stop() while the liveness check is pending waits and wins."""
        btc_node.build(100, 101)

        async def slow_ping():
            await asyncio.sleep(0.1)
            return True

        btc_node.client.ping = AsyncMock(side_effect=slow_ping)

        starting = asyncio.create_task(btc_engine.start())
        await asyncio.sleep(0.02)
        assert btc_engine.state == EngineState.STARTING

        await btc_engine.stop()

        assert btc_engine.state == EngineState.STOPPED
        await starting
        await asyncio.sleep(0.05)
        assert btc_engine.state == EngineState.STOPPED
        btc_node.client.latest_height.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_loop_survives_database_outage(self, btc_node, session_maker, engine_config):
        """Refused connections back off; indexing resumes once the database is back."""
        btc_node.build(100, 103)
        database = FlakyDatabase(session_maker)
        database.down = True
        engine = IngestionEngine(BtcStrategy(btc_node.client), database, engine_config)

        await engine.start()
        await asyncio.sleep(0.1)

        assert engine.state != EngineState.STOPPED
        assert engine.status["last_error"].startswith("StorageError")

        database.down = False

        async def caught_up():
            cursor = await read_cursor(session_maker, "BTC")
            return cursor is not None and cursor.last_indexed_block == 103

        await wait_for(caught_up)
        await engine.stop()

        assert engine.state == EngineState.STOPPED


class FlakyDatabase:
    """Session factory refusing connections while ``down`` is set."""

    def __init__(self, session_maker) -> None:
        self.session_maker = session_maker
        self.down = False

    def __call__(self):
        if self.down:
            raise ConnectionRefusedError(111, "Connect call failed")
        return self.session_maker()
