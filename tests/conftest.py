# tests/conftest.py

import pytest

from leafsync.core.logging import SyncLogger
from leafsync.database.connection import DatabaseManager
from leafsync.database.store import DatabaseLeafStore
from leafsync.types import DatabaseConfig, StreamConfig

from tests.helpers import WS_URL, FakeConnector, FakeNode, RecordingSink


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    SyncLogger.configure(log_level="DEBUG", console_enabled=True, force=True)


@pytest.fixture
def node():
    return FakeNode()


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def stream_config():
    return StreamConfig(endpoint_url=WS_URL, request_timeout=2.0, open_timeout=1.0)


@pytest.fixture
def db_manager(tmp_path):
    manager = DatabaseManager(DatabaseConfig(url=f"sqlite:///{tmp_path / 'leafsync.db'}"))
    manager.initialize()
    manager.create_tables()
    yield manager
    manager.shutdown()


@pytest.fixture
def store(db_manager):
    return DatabaseLeafStore(db_manager)


@pytest.fixture
def sink():
    return RecordingSink()
