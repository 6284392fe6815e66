"""
Indexer main entry point.

Builds chain clients, strategies and one ingestion engine per enabled
chain, runs them until SIGINT/SIGTERM, then shuts everything down.
"""

import asyncio
import signal
import sys
import warnings

# Suppress eth_utils network warnings about invalid ChainId
# Must be set BEFORE importing any modules that use eth_utils
warnings.filterwarnings(
    "ignore",
    message=".*does not have a valid ChainId.*",
    category=UserWarning,
)

from loguru import logger  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from chain_indexer.config.constants import CHAIN_BTC, CHAIN_ETH  # noqa: E402
from chain_indexer.config.database import (  # noqa: E402
    create_db_engine,
    create_session_maker,
)
from chain_indexer.config.logging import setup_logging  # noqa: E402
from chain_indexer.config.settings import Settings, settings  # noqa: E402
from chain_indexer.services.chain_client import BtcClient, EthClient  # noqa: E402
from chain_indexer.services.ingestion import (  # noqa: E402
    BtcStrategy,
    EngineConfig,
    EthStrategy,
    IngestionEngine,
)
from chain_indexer.services.rpc_retry import RetryPolicy  # noqa: E402
from chain_indexer.utils.exceptions import ChainUnavailableError  # noqa: E402


def build_engines(
    settings: Settings,
    session_maker: async_sessionmaker[AsyncSession],
) -> list[IngestionEngine]:
    """
    Create one engine per enabled chain.

    Args:
        settings: Application settings
        session_maker: Session factory shared by all engines

    Returns:
        Engines, not yet started
    """
    policy = RetryPolicy.from_settings(settings)
    engines: list[IngestionEngine] = []

    if settings.btc_enabled:
        client = BtcClient(
            settings.btc_rpc_url,
            settings.btc_rpc_user,
            settings.btc_rpc_password,
            retry_policy=policy,
            timeout=settings.rpc_timeout,
        )
        strategy = BtcStrategy(client, resolve_inputs=settings.btc_resolve_inputs)
        engines.append(
            IngestionEngine(
                strategy, session_maker, EngineConfig.for_chain(settings, CHAIN_BTC)
            )
        )

    if settings.eth_enabled:
        client = EthClient(
            settings.eth_rpc_url,
            retry_policy=policy,
            timeout=settings.rpc_timeout,
        )
        engines.append(
            IngestionEngine(
                EthStrategy(client),
                session_maker,
                EngineConfig.for_chain(settings, CHAIN_ETH),
            )
        )

    return engines


async def start_engines(engines: list[IngestionEngine]) -> list[IngestionEngine]:
    """
    Start engines; a chain that fails its liveness check stays stopped.

    Returns:
        Engines that started
    """
    started = []
    for engine in engines:
        try:
            await engine.start()
        except ChainUnavailableError as e:
            logger.error(f"[{engine.chain} Indexer] Not started: {e}")
            continue
        started.append(engine)
    return started


async def shutdown(engines: list[IngestionEngine]) -> None:
    """Stop engines and release their clients."""
    await asyncio.gather(*(engine.stop() for engine in engines))
    for engine in engines:
        try:
            await engine.strategy.client.close()
        except Exception as e:
            logger.warning(f"[{engine.chain} Client] Failed to close: {e}")


async def main() -> None:
    """Run the indexer until a shutdown signal arrives."""
    setup_logging(settings.log_level, settings.log_dir)

    db_engine = create_db_engine(settings)
    session_maker = create_session_maker(db_engine)
    engines = build_engines(settings, session_maker)

    if not engines:
        logger.warning("No chain enabled (BTC_ENABLED / ETH_ENABLED), exiting")
        await db_engine.dispose()
        return

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    try:
        started = await start_engines(engines)
        if not started:
            logger.error("No chain node reachable, exiting")
            return

        logger.success(
            f"Indexer running: {', '.join(engine.chain for engine in started)}"
        )
        await stop_requested.wait()
        logger.info("Shutdown signal received")
    finally:
        await shutdown(engines)
        await db_engine.dispose()
        logger.info("Indexer stopped")


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Indexer stopped by user (KeyboardInterrupt)")
    except Exception as e:
        logger.exception(f"Indexer crashed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
