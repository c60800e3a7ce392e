"""
SQLAlchemy models and database plumbing for the credential vault.
"""

from .db_base import JSON, TimestampMixin, UUIDMixin, utc_now
from .db_config import (
    Base,
    DatabaseManager,
    build_engine,
    close_db,
    get_db_manager,
    get_development_config,
    import_all_models,
    initialize_db,
    set_db_manager,
)
from .db_credential_models import NotionCredential
from .db_migrations import apply_additive_migrations

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "TimestampMixin",
    "UUIDMixin",
    "utc_now",
    # Configuration
    "DatabaseManager",
    "build_engine",
    "get_development_config",
    "get_db_manager",
    "set_db_manager",
    "initialize_db",
    "close_db",
    "import_all_models",
    "apply_additive_migrations",
    # Models
    "NotionCredential",
]
