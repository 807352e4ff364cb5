"""Shared test fixtures."""

import pytest
import pytest_asyncio

from paygate.database import create_engine, init_db, session_factory
from paygate.gateways.mock_gateway import MockGateway
from paygate.ledger.memory import InMemoryLedger
from paygate.ledger.sql import SqlLedger

SECRET = "test-secret"


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def gateway(ledger):
    """Mock gateway that always accepts, with no simulated latency."""
    return MockGateway(ledger, secret=SECRET, failure_rate=0.0, latency_ms=0)


@pytest_asyncio.fixture
async def sql_ledger(tmp_path):
    """Ledger on a fresh SQLite file for each test."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await init_db(engine)
    yield SqlLedger(session_factory(engine))
    await engine.dispose()


@pytest.fixture
def sql_gateway(sql_ledger):
    return MockGateway(sql_ledger, secret=SECRET, failure_rate=0.0, latency_ms=0)
