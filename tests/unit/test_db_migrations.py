"""Tests for additive schema upgrades on legacy credential tables."""

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from notion_vault.db import apply_additive_migrations
from notion_vault.services.credential_service import CredentialStore

LEGACY_DDL = """
CREATE TABLE notion_credentials (
    id VARCHAR(36) PRIMARY KEY,
    app_name VARCHAR(100) NOT NULL,
    workspace_id VARCHAR(100) NOT NULL,
    api_key_encrypted TEXT NOT NULL,
    workspace_name VARCHAR(255),
    is_active BOOLEAN NOT NULL,
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL,
    last_used_at DATETIME,
    UNIQUE (app_name, workspace_id)
)
"""


@pytest.fixture
def legacy_engine(encryptor):
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    with engine.begin() as connection:
        connection.execute(text(LEGACY_DDL))
        connection.execute(
            text(
                "INSERT INTO notion_credentials (id, app_name, workspace_id, api_key_encrypted, "
                "workspace_name, is_active, created_at, updated_at) VALUES "
                "('legacy-1', 'admintool', 'ws-legacy', :blob, 'Legacy', 1, "
                "'2024-01-01 00:00:00', '2024-01-01 00:00:00')"
            ),
            {"blob": encryptor.encrypt("secret_legacy_token")},
        )
    yield engine
    engine.dispose()


def _columns(engine):
    return {column["name"] for column in inspect(engine).get_columns("notion_credentials")}


def _indexes(engine):
    return {index["name"] for index in inspect(engine).get_indexes("notion_credentials")}


class TestApplyAdditiveMigrations:
    def test_adds_missing_columns_and_indexes(self, legacy_engine):
        added = apply_additive_migrations(legacy_engine)

        assert added == ["notion_database_id", "notion_page_id", "config"]
        assert {"notion_database_id", "notion_page_id", "config"} <= _columns(legacy_engine)
        assert {
            "idx_notion_credentials_database_id",
            "idx_notion_credentials_page_id",
        } <= _indexes(legacy_engine)

    def test_is_idempotent(self, legacy_engine):
        apply_additive_migrations(legacy_engine)

        assert apply_additive_migrations(legacy_engine) == []

    def test_existing_rows_survive(self, legacy_engine, encryptor):
        session = sessionmaker(bind=legacy_engine)()
        store = CredentialStore(session, encryptor)

        store.initialize()

        assert store.get("admintool", "ws-legacy").token == "secret_legacy_token"
        assert store.get_configuration("admintool", "ws-legacy").database_id is None
        assert store.update_configuration("admintool", "ws-legacy", database_id="db-1") is True
        session.close()
