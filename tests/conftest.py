"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for Settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("BTC_RPC_URL", "http://localhost:8332")
os.environ.setdefault("BTC_RPC_PASSWORD", "test")
os.environ.setdefault("ETH_RPC_URL", "http://localhost:8545")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from chain_indexer.models import Base  # noqa: E402
from chain_indexer.services.ingestion.state import EngineConfig  # noqa: E402
from tests.factories import FakeBtcNode, FakeEthNode  # noqa: E402

# ============================================================================
# DATABASE
# ============================================================================


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'indexer.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    """Session factory bound to the test database."""
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
def engine_config():
    """Loop parameters used by engine tests."""
    return EngineConfig(
        start_height=100,
        max_blocks_per_batch=2,
        poll_interval=0.01,
        error_backoff=0.02,
        max_reorg_depth=3,
    )


@pytest.fixture
def btc_node():
    """Bitcoin node with no blocks yet."""
    return FakeBtcNode()


@pytest.fixture
def eth_node():
    """Ethereum node with no blocks yet."""
    return FakeEthNode()
