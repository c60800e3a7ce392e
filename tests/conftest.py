"""
Test fixtures for the Notion credential vault.

Provides an in-memory SQLite database, a deterministic master key, a
controllable clock, and ready-made store/cache/limiter instances.
"""

from typing import List

import pytest
from sqlalchemy.orm import Session

from notion_vault.config import AppConfig, RateLimitConfig, reset_config, set_config
from notion_vault.db import DatabaseManager, get_development_config, import_all_models
from notion_vault.db.db_config import Base
from notion_vault.services.credential_service import CredentialStore
from notion_vault.utils.encryption_utils import TokenEncryptor
from notion_vault.utils.rate_limiter import SlidingWindowRateLimiter
from notion_vault.utils.response_cache import ResponseCache

from tests.fixtures.factories import NotionCredentialFactory, bind_factories
from tests.fixtures.sample_data import TEST_MASTER_KEY


class FakeClock:
    """Monotonic clock that only moves when told to; ``sleep`` advances it."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def app_config(monkeypatch) -> AppConfig:
    """Fresh global configuration with a known master key for every test."""
    monkeypatch.setenv("ENCRYPTION_MASTER_KEY", TEST_MASTER_KEY)
    monkeypatch.delenv("NOTION_RATE_LIMIT_PER_MINUTE", raising=False)
    monkeypatch.delenv("NOTION_API_VERSION", raising=False)
    reset_config()
    config = AppConfig()
    set_config(config)
    yield config
    reset_config()


@pytest.fixture(scope="session")
def db_manager() -> DatabaseManager:
    """In-memory SQLite database manager with all models registered."""
    import_all_models()
    manager = DatabaseManager(get_development_config())
    yield manager
    manager.close()


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Create a database session for each test.

    Tables are created before and dropped after every test so each test
    starts from an empty schema.
    """
    Base.metadata.create_all(db_manager.engine)
    session = db_manager.get_session()

    yield session

    session.rollback()
    db_manager.close_session()
    Base.metadata.drop_all(db_manager.engine)


@pytest.fixture
def encryptor() -> TokenEncryptor:
    return TokenEncryptor(TEST_MASTER_KEY)


@pytest.fixture
def credential_store(db_session: Session, encryptor: TokenEncryptor) -> CredentialStore:
    store = CredentialStore(db_session, encryptor)
    store.initialize()
    return store


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ResponseCache:
    return ResponseCache(clock=clock)


@pytest.fixture
def rate_limiter(clock: FakeClock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(RateLimitConfig(), clock=clock, sleep=clock.sleep)


@pytest.fixture
def credential_factory(db_session: Session):
    """NotionCredentialFactory bound to the test session."""
    bind_factories(db_session)
    return NotionCredentialFactory
