"""
Ingestion engine.

One engine per chain, parameterized by a ChainStrategy. Polls the node
for new blocks and ingests them strictly in height order. Each block is
written in a single transaction together with the cursor advance, so
the cursor never points past data that is not fully stored.
"""

import asyncio

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chain_indexer.repositories.sync_status_repository import SyncStatusRepository
from chain_indexer.utils.db import storage_unit
from chain_indexer.utils.exceptions import (
    BATCH_ABORTING,
    BlockNotAvailableError,
    ChainReorgError,
    ChainUnavailableError,
    ReorgTooDeepError,
)

from .state import BatchResult, EngineConfig, EngineState
from .strategy import ChainStrategy

_ACTIVE_STATES = (EngineState.BATCHING, EngineState.INDEXING_BLOCK)


class IngestionEngine:
    """
    Block ingestion loop for one chain.

    Lifecycle:
        engine = IngestionEngine(strategy, session_maker, config)
        await engine.start()   # liveness check, spawns the loop
        ...
        await engine.stop()    # waits for the block in flight
    """

    def __init__(
        self,
        strategy: ChainStrategy,
        session_maker: async_sessionmaker[AsyncSession],
        config: EngineConfig,
    ) -> None:
        """
        Initialize engine.

        Args:
            strategy: Chain-specific client and persistence
            session_maker: Session factory shared by all engines
            config: Loop parameters
        """
        self.strategy = strategy
        self.session_maker = session_maker
        self.config = config
        self.chain = strategy.chain

        self._state = EngineState.STOPPED
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._stopped = asyncio.Event()
        self._stopped.set()
        self.last_batch: BatchResult | None = None
        self.last_error: str | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def status(self) -> dict:
        """Status projection for monitoring."""
        return {
            "chain": self.chain,
            "state": self._state.value,
            "last_batch": self.last_batch.to_dict() if self.last_batch else None,
            "last_error": self.last_error,
        }

    def _set_state(self, state: EngineState) -> None:
        # A pending stop is only ever followed by STOPPED
        if self._state == EngineState.STOPPING and state != EngineState.STOPPED:
            return
        self._state = state

    async def start(self) -> None:
        """
        Start ingestion.

        No-op unless stopped.

        Raises:
            ChainUnavailableError: Node did not answer the liveness check
        """
        if self._state != EngineState.STOPPED:
            logger.debug(f"[{self.chain} Indexer] Already running ({self._state})")
            return

        self._state = EngineState.STARTING
        self._stop_event.clear()
        self._stopped.clear()
        logger.info(f"[{self.chain} Indexer] Starting...")

        try:
            reachable = await self.strategy.client.ping()
        except BaseException:
            self._mark_stopped()
            raise

        if not reachable:
            self._mark_stopped()
            raise ChainUnavailableError(f"{self.chain} node is not reachable")

        # stop() arrived while the liveness check was pending
        if self._stop_event.is_set():
            self._mark_stopped()
            logger.info(f"[{self.chain} Indexer] Start cancelled by stop request")
            return

        self._state = EngineState.IDLE
        self._task = asyncio.create_task(
            self._run_loop(), name=f"{self.chain.lower()}-indexer"
        )
        self._task.add_done_callback(self._handle_task_done)
        logger.success(f"[{self.chain} Indexer] Started")

    async def stop(self) -> None:
        """
        Request stop and wait until the loop exits.

        The block currently being written is completed first.
        """
        if self._state == EngineState.STOPPED:
            return

        if self._state != EngineState.STOPPING:
            logger.info(f"[{self.chain} Indexer] Stopping...")
            self._state = EngineState.STOPPING
            self._stop_event.set()

        await self._stopped.wait()
        logger.info(f"[{self.chain} Indexer] Stopped")

    def _handle_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning(f"[{self.chain} Indexer] Loop task cancelled")
        elif task.exception() is not None:
            logger.error(f"[{self.chain} Indexer] Loop task failed: {task.exception()}")
        if self._task is task:
            self._task = None
            self._mark_stopped()

    def _mark_stopped(self) -> None:
        self._state = EngineState.STOPPED
        self._stopped.set()

    async def _sleep(self, seconds: float) -> None:
        """Sleep, waking early when stop is requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except TimeoutError:
            pass

    async def _run_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                self._set_state(EngineState.IDLE)
                try:
                    result = await self.run_once()
                except BATCH_ABORTING as e:
                    await self._back_off(e)
                    continue
                except Exception as e:
                    logger.exception(f"[{self.chain} Indexer] Unexpected error: {e}")
                    await self._back_off(e)
                    continue

                self.last_error = None
                if result.caught_up:
                    await self._sleep(self.config.poll_interval)
        finally:
            self._task = None
            self._mark_stopped()

    async def _back_off(self, error: Exception) -> None:
        """Record failure, clear the syncing flag, sleep the error backoff."""
        self.last_error = f"{type(error).__name__}: {error}"
        if isinstance(error, ReorgTooDeepError):
            logger.critical(
                f"[{self.chain} Indexer] {error}. Manual intervention required"
            )
        else:
            logger.error(f"[{self.chain} Indexer] Batch failed: {self.last_error}")

        self._set_state(EngineState.ERROR_BACKOFF)
        try:
            async with storage_unit(self.session_maker, f"{self.chain} syncing flag") as session:
                await SyncStatusRepository(session).set_syncing(self.chain, False)
        except Exception as e:
            # Best effort
            logger.warning(f"[{self.chain} Indexer] Could not clear syncing flag: {e}")

        await self._sleep(self.config.error_backoff)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def run_once(self) -> BatchResult:
        """
        Run one batch: read cursor and tip, ingest the next window.

        Returns:
            Batch outcome

        Raises:
            Any batch-aborting error; committed blocks stay committed
        """
        self._set_state(EngineState.BATCHING)
        try:
            return await self._run_batch()
        finally:
            if self._state in _ACTIVE_STATES:
                self._state = EngineState.IDLE if self._task else EngineState.STOPPED

    async def _run_batch(self) -> BatchResult:
        async with storage_unit(self.session_maker, f"{self.chain} cursor read") as session:
            status = await SyncStatusRepository(session).read(self.chain)
        cursor = status.last_indexed_block if status else self.config.start_height

        tip = await self.strategy.client.latest_height()

        if cursor >= tip:
            async with storage_unit(self.session_maker, f"{self.chain} syncing flag") as session:
                await SyncStatusRepository(session).set_syncing(self.chain, False)
            logger.debug(f"[{self.chain} Indexer] Up to date at block {cursor}")
            self.last_batch = BatchResult(
                chain=self.chain, tip=tip, cursor=cursor, caught_up=True
            )
            return self.last_batch

        async with storage_unit(self.session_maker, f"{self.chain} syncing flag") as session:
            await SyncStatusRepository(session).set_syncing(self.chain, True)

        from_height = cursor + 1
        to_height = min(cursor + self.config.max_blocks_per_batch, tip)
        result = BatchResult(
            chain=self.chain,
            tip=tip,
            cursor=cursor,
            from_height=from_height,
            to_height=to_height,
        )
        logger.info(
            f"[{self.chain} Indexer] Indexing blocks {from_height} -> {to_height} "
            f"(tip {tip})"
        )

        for height in range(from_height, to_height + 1):
            if self._stop_event.is_set():
                result.stopped_early = True
                break

            self._set_state(EngineState.INDEXING_BLOCK)
            try:
                stored = await self._ingest_height(height, tip)
            except ChainReorgError as e:
                if isinstance(e, ReorgTooDeepError):
                    raise
                result.rolled_back_to = await self._roll_back(e)
                result.cursor = result.rolled_back_to
                break

            result.cursor = height
            if stored:
                result.indexed += 1
            else:
                result.skipped += 1
            self._set_state(EngineState.BATCHING)

        result.caught_up = result.cursor >= tip and result.rolled_back_to is None
        self.last_batch = result
        logger.info(
            f"[{self.chain} Indexer] Batch done: {result.indexed} indexed, "
            f"{result.skipped} already stored, cursor {result.cursor}"
        )
        return result

    async def _ingest_height(self, height: int, tip: int) -> bool:
        """
        Ingest one height in one transaction.

        Returns:
            True if the block was written, False if it was already stored
        """
        syncing = height < tip

        block_hash = await self.strategy.resolve_block_hash(height)
        if block_hash is None:
            raise BlockNotAvailableError(self.chain, height)

        async with storage_unit(self.session_maker, f"{self.chain} block {height}") as session:
            exists = await self.strategy.block_exists(session, block_hash)
            if exists:
                await SyncStatusRepository(session).advance(
                    self.chain, height, block_hash, syncing
                )
        if exists:
            logger.debug(f"[{self.chain} Indexer] Block {height} already stored")
            return False

        block = await self.strategy.fetch_block(height, block_hash)
        if block is None:
            raise BlockNotAvailableError(self.chain, height)

        parent = self.strategy.parent_hash(block)
        async with storage_unit(self.session_maker, f"{self.chain} block {height}") as session:
            stored_parent = await self.strategy.stored_block_hash(session, height - 1)
            if stored_parent is not None and parent is not None and stored_parent != parent:
                raise ChainReorgError(self.chain, height, stored_parent, parent)

            tx_count = await self.strategy.persist_block(session, block)
            await SyncStatusRepository(session).advance(
                self.chain, height, block_hash, syncing
            )

        logger.info(
            f"[{self.chain} Indexer] Block {height} indexed ({tx_count} transactions)"
        )
        return True

    async def _roll_back(self, reorg: ChainReorgError) -> int:
        """
        Roll back to the highest height where stored and node hashes agree.

        Returns:
            Height the cursor was rewound to

        Raises:
            ReorgTooDeepError: No common ancestor within max_reorg_depth
        """
        depth = self.config.max_reorg_depth
        logger.warning(f"[{self.chain} Indexer] {reorg}, searching common ancestor")

        lowest = reorg.height - 1 - depth
        candidates = [
            height for height in range(reorg.height - 2, lowest - 1, -1) if height >= 0
        ]

        async with storage_unit(self.session_maker, f"{self.chain} reorg scan") as session:
            stored = {
                height: await self.strategy.stored_block_hash(session, height)
                for height in candidates
            }

        ancestor = None
        for height in candidates:
            if stored[height] is None:
                # Nothing indexed at this height: nothing to diverge from
                ancestor = height
                break
            if await self.strategy.resolve_block_hash(height) == stored[height]:
                ancestor = height
                break

        if ancestor is None:
            raise ReorgTooDeepError(
                self.chain, reorg.height, reorg.expected_parent, reorg.actual_parent
            )

        async with storage_unit(self.session_maker, f"{self.chain} reorg rollback") as session:
            await self.strategy.delete_above(session, ancestor)
            await SyncStatusRepository(session).rewind(
                self.chain, ancestor, stored[ancestor]
            )

        logger.warning(
            f"[{self.chain} Indexer] Rolled back {reorg.height - 1 - ancestor} "
            f"block(s) to height {ancestor}"
        )
        return ancestor
