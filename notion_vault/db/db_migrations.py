"""
Additive, idempotent schema upgrades for ``notion_credentials``.

Tables created by older releases lack the target configuration columns.
Each run adds whatever nullable columns and indexes are missing and leaves
existing data untouched, so it is safe to call on every startup.
"""

from typing import List

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from ..utils.logger import get_logger
from .db_credential_models import NotionCredential

ADDITIVE_COLUMNS = ("notion_database_id", "notion_page_id", "config")
ADDITIVE_INDEXES = ("idx_notion_credentials_database_id", "idx_notion_credentials_page_id")


def apply_additive_migrations(engine: Engine) -> List[str]:
    """
    Add missing nullable columns and their indexes.

    Args:
        engine: Engine bound to a database where the table already exists

    Returns:
        Names of the columns that were added (empty when already current)
    """
    logger = get_logger()
    table = NotionCredential.__table__
    existing = {column["name"] for column in inspect(engine).get_columns(table.name)}
    added: List[str] = []

    with engine.begin() as connection:
        preparer = engine.dialect.identifier_preparer
        for name in ADDITIVE_COLUMNS:
            if name in existing:
                continue
            column = table.columns[name]
            column_type = column.type.compile(dialect=engine.dialect)
            connection.execute(
                text(
                    f"ALTER TABLE {preparer.quote(table.name)} "
                    f"ADD COLUMN {preparer.quote(name)} {column_type}"
                )
            )
            added.append(name)

        for index in table.indexes:
            if index.name in ADDITIVE_INDEXES:
                index.create(connection, checkfirst=True)

    if added:
        logger.info("Applied credential table migrations", extra={"added_columns": added})
    return added
