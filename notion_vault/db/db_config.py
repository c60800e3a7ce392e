"""
Engine and session management for the credential database.

SQLite serves development and tests; any other SQLAlchemy URL (PostgreSQL in
production) gets a sized connection pool. A process-wide manager can be
installed with ``initialize_db`` for callers that do not pass sessions around.
"""

from typing import Any, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import DatabaseConfig, get_config
from ..exceptions import ConfigurationError
from ..utils.logger import get_logger

Base: Any = declarative_base()


def build_engine(config: DatabaseConfig) -> Engine:
    url = make_url(config.connection_string)
    if url.get_backend_name() != "sqlite":
        return create_engine(
            url,
            echo=config.echo,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=config.pool_timeout,
        )

    options: dict = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        # An in-memory database lives and dies with its single connection
        options["poolclass"] = StaticPool
    return create_engine(url, echo=config.echo, **options)


class DatabaseManager:
    """Owns one engine and a thread-scoped session registry."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine = build_engine(config)
        self.session_factory = sessionmaker(bind=self.engine)
        self.scoped_session = scoped_session(self.session_factory)

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """The current thread's session."""
        return self.scoped_session()

    def close_session(self) -> None:
        self.scoped_session.remove()

    def close(self) -> None:
        self.scoped_session.remove()
        self.engine.dispose()


def get_development_config() -> DatabaseConfig:
    """In-memory SQLite, for development and tests."""
    return DatabaseConfig(connection_string="sqlite:///:memory:")


def import_all_models() -> None:
    """Register every model on ``Base.metadata``."""
    from sqlalchemy.orm import configure_mappers

    from .db_credential_models import NotionCredential  # noqa: F401

    configure_mappers()


_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """
    Raises:
        ConfigurationError: If ``initialize_db`` has not been called
    """
    if _db_manager is None:
        raise ConfigurationError(
            "Database manager not initialized. Call initialize_db() first.",
            operation="get_db_manager",
        )
    return _db_manager


def set_db_manager(manager: Optional[DatabaseManager]) -> None:
    global _db_manager
    _db_manager = manager


def initialize_db(config: Optional[DatabaseConfig] = None) -> DatabaseManager:
    """
    Install the process-wide manager and create any missing tables.

    Args:
        config: Defaults to ``get_config().database``
    """
    config = config or get_config().database
    manager = DatabaseManager(config)
    get_logger().info(
        "Initializing credential database",
        extra={"backend": manager.engine.url.get_backend_name()},
    )
    import_all_models()
    manager.create_tables()
    set_db_manager(manager)
    return manager


def close_db() -> None:
    """Dispose of the process-wide manager, if any."""
    if _db_manager is not None:
        _db_manager.close()
    set_db_manager(None)
