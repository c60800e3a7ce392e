"""
Encrypted storage of Notion access tokens, one per app and workspace.

Tokens are encrypted with TokenEncryptor before they reach the database and
only leave this module as a SecretStr inside DecryptedCredential. Every write
is committed per call; SQLAlchemy failures are rolled back and re-raised as
StorageError.
"""

import uuid
from typing import Any, List, Optional

from sqlalchemy import and_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import TokenPrefix
from ..db.db_base import utc_now
from ..db.db_config import Base
from ..db.db_credential_models import NotionCredential
from ..db.db_migrations import apply_additive_migrations
from ..exceptions import (
    CredentialNotFoundError,
    DecryptionError,
    DecryptionFailure,
    ErrorCode,
    StorageError,
    ValidationError,
)
from ..schemas.credential_schemas import (
    CredentialSummary,
    DecryptedCredential,
    WorkspaceConfiguration,
    WorkspaceInfo,
)
from ..utils.encryption_utils import TokenEncryptor
from ..utils.logger import get_logger

_UPSERT_DIALECTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


def validate_token_format(token: Any) -> None:
    """
    Reject values that cannot be Notion integration tokens.

    The token itself is never included in the error.

    Raises:
        ValidationError: If the token is empty or has an unknown prefix
    """
    if not token or not isinstance(token, str):
        raise ValidationError(
            "Notion API key is required", field="token", error_code=ErrorCode.MISSING_REQUIRED
        )
    prefixes = tuple(prefix.value for prefix in TokenPrefix)
    if not token.startswith(prefixes):
        raise ValidationError(
            f"Invalid Notion API key format. Key must start with one of: {', '.join(prefixes)}",
            field="token",
            error_code=ErrorCode.INVALID_FORMAT,
        )


def _require(field: str, value: Any) -> None:
    if not value or not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{field} must be a non-empty string",
            field=field,
            error_code=ErrorCode.MISSING_REQUIRED,
        )


class CredentialStore:
    """
    Repository for encrypted Notion credentials.

    The store owns its session: every write, ``record_usage`` included,
    commits or rolls back that session. Give it a session of its own rather
    than one carrying unrelated pending work.

    Example:
        store = CredentialStore(session, TokenEncryptor())
        store.initialize()
        store.store("admintool", "ws-1", "ntn_...", "Marketing")
        store.get("admintool", "ws-1").token
    """

    def __init__(self, session: Session, encryptor: Optional[TokenEncryptor] = None):
        self.session = session
        self.encryptor = encryptor or TokenEncryptor()
        self.logger = get_logger()

    def _filter(self, app_name: str, workspace_id: str, active_only: bool = False):
        conditions = [
            NotionCredential.app_name == app_name,
            NotionCredential.workspace_id == workspace_id,
        ]
        if active_only:
            conditions.append(NotionCredential.is_active.is_(True))
        return self.session.query(NotionCredential).filter(and_(*conditions))

    def _get_active_row(self, app_name: str, workspace_id: str) -> NotionCredential:
        try:
            row = self._filter(app_name, workspace_id, active_only=True).first()
        except SQLAlchemyError as e:
            raise StorageError(
                "Failed to load credential",
                operation="get",
                cause=e,
                app_name=app_name,
                workspace_id=workspace_id,
            )
        if row is None:
            raise CredentialNotFoundError(
                f"No active credential for app '{app_name}' and workspace '{workspace_id}'",
                app_name=app_name,
                workspace_id=workspace_id,
            )
        return row

    def _write(self, operation: str, app_name: str, workspace_id: str, fn) -> Any:
        """Run ``fn`` and commit; roll back and wrap database failures."""
        try:
            result = fn()
            self.session.commit()
            return result
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageError(
                f"Failed to {operation.replace('_', ' ')} credential",
                operation=operation,
                cause=e,
                app_name=app_name,
                workspace_id=workspace_id,
            )

    def initialize(self) -> None:
        """
        Create the credential table and indexes if missing, then apply
        additive migrations. Safe to call repeatedly.

        Raises:
            StorageError: If any DDL statement fails
        """
        engine = self.session.get_bind()
        try:
            Base.metadata.create_all(engine, tables=[NotionCredential.__table__])
            apply_additive_migrations(engine)
        except SQLAlchemyError as e:
            raise StorageError(
                "Failed to initialize credential storage", operation="initialize", cause=e
            )

    def store(
        self,
        app_name: str,
        workspace_id: str,
        token: str,
        workspace_name: Optional[str] = None,
    ) -> str:
        """
        Encrypt and upsert a token for ``(app_name, workspace_id)``.

        An existing row keeps its id and configuration; its ciphertext and
        name are replaced and it is reactivated.

        Returns:
            The row id

        Raises:
            ValidationError: Before any encryption, on missing fields or a bad token prefix
            StorageError: If the write fails
        """
        _require("app_name", app_name)
        _require("workspace_id", workspace_id)
        validate_token_format(token)

        encrypted = self.encryptor.encrypt(token)
        now = utc_now()
        dialect = self.session.get_bind().dialect.name

        def upsert():
            insert = _UPSERT_DIALECTS.get(dialect)
            if insert is None:
                self._upsert_generic(app_name, workspace_id, encrypted, workspace_name, now)
            else:
                stmt = insert(NotionCredential).values(
                    id=str(uuid.uuid4()),
                    app_name=app_name,
                    workspace_id=workspace_id,
                    api_key_encrypted=encrypted,
                    workspace_name=workspace_name,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["app_name", "workspace_id"],
                    set_={
                        "api_key_encrypted": stmt.excluded.api_key_encrypted,
                        "workspace_name": stmt.excluded.workspace_name,
                        "is_active": True,
                        "updated_at": now,
                    },
                )
                self.session.execute(stmt)
            return self._filter(app_name, workspace_id).with_entities(NotionCredential.id).scalar()

        credential_id = self._write("store", app_name, workspace_id, upsert)

        self.logger.info(
            "Stored Notion credential",
            extra={
                "app_name": app_name,
                "workspace_id": workspace_id,
                "credential_id": credential_id,
            },
        )
        return credential_id

    def _upsert_generic(self, app_name, workspace_id, encrypted, workspace_name, now) -> None:
        row = self._filter(app_name, workspace_id).with_for_update().first()
        if row is None:
            self.session.add(
                NotionCredential(
                    app_name=app_name,
                    workspace_id=workspace_id,
                    api_key_encrypted=encrypted,
                    workspace_name=workspace_name,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                )
            )
        else:
            row.api_key_encrypted = encrypted
            row.workspace_name = workspace_name
            row.is_active = True
            row.updated_at = now
        self.session.flush()

    def get(self, app_name: str, workspace_id: str) -> DecryptedCredential:
        """
        Load and decrypt the active credential.

        Raises:
            CredentialNotFoundError: No active row
            DecryptionFailure: The stored blob could not be decrypted
        """
        row = self._get_active_row(app_name, workspace_id)
        try:
            token = self.encryptor.decrypt(row.api_key_encrypted)
        except DecryptionError as e:
            raise DecryptionFailure(
                cause=e, app_name=app_name, workspace_id=workspace_id, credential_id=row.id
            )
        return DecryptedCredential(api_key=token, workspace_name=row.workspace_name)

    def list(self, app_name: str) -> List[CredentialSummary]:
        """All workspaces stored for an app, active or not, ordered by name."""
        try:
            rows = (
                self.session.query(NotionCredential)
                .filter(NotionCredential.app_name == app_name)
                .order_by(NotionCredential.workspace_name, NotionCredential.workspace_id)
                .all()
            )
        except SQLAlchemyError as e:
            raise StorageError(
                "Failed to list credentials", operation="list", cause=e, app_name=app_name
            )
        return [CredentialSummary.model_validate(row) for row in rows]

    def disable(self, app_name: str, workspace_id: str) -> bool:
        """Soft-delete. Returns whether a row was affected."""
        count = self._write(
            "disable",
            app_name,
            workspace_id,
            lambda: self._filter(app_name, workspace_id).update(
                {NotionCredential.is_active: False, NotionCredential.updated_at: utc_now()},
                synchronize_session=False,
            ),
        )
        if count:
            self.logger.info(
                "Disabled Notion credential",
                extra={"app_name": app_name, "workspace_id": workspace_id},
            )
        return count > 0

    def delete(self, app_name: str, workspace_id: str) -> bool:
        """Hard-delete. Returns whether a row was affected."""
        count = self._write(
            "delete",
            app_name,
            workspace_id,
            lambda: self._filter(app_name, workspace_id).delete(synchronize_session=False),
        )
        if count:
            self.logger.info(
                "Deleted Notion credential",
                extra={"app_name": app_name, "workspace_id": workspace_id},
            )
        return count > 0

    def record_usage(self, app_name: str, workspace_id: str) -> None:
        """
        Stamp ``last_used_at`` and commit. Failures are rolled back and logged,
        never raised.
        """
        try:
            self._filter(app_name, workspace_id).update(
                {
                    NotionCredential.last_used_at: utc_now(),
                    # Keep updated_at for real modifications
                    NotionCredential.updated_at: NotionCredential.updated_at,
                },
                synchronize_session=False,
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            self.logger.warning(
                "Failed to record credential usage",
                extra={
                    "app_name": app_name,
                    "workspace_id": workspace_id,
                    "error": str(e),
                },
            )

    def update_configuration(
        self,
        app_name: str,
        workspace_id: str,
        database_id: Optional[str] = None,
        page_id: Optional[str] = None,
        config: Any = None,
    ) -> bool:
        """
        Replace the target database, page and free-form config.

        All three are written, so passing None clears a field. ``config`` may
        be any JSON value; it is stored and returned without interpretation.

        Returns:
            Whether a row was affected
        """
        count = self._write(
            "update_configuration",
            app_name,
            workspace_id,
            lambda: self._filter(app_name, workspace_id).update(
                {
                    NotionCredential.notion_database_id: database_id,
                    NotionCredential.notion_page_id: page_id,
                    NotionCredential.config: config,
                    NotionCredential.updated_at: utc_now(),
                },
                synchronize_session=False,
            ),
        )
        return count > 0

    def get_configuration(self, app_name: str, workspace_id: str) -> WorkspaceConfiguration:
        """Target configuration of the active credential."""
        row = self._get_active_row(app_name, workspace_id)
        return WorkspaceConfiguration(
            database_id=row.notion_database_id,
            page_id=row.notion_page_id,
            config=row.config,
        )

    def get_workspace_info(self, app_name: str, workspace_id: str) -> WorkspaceInfo:
        """Everything stored for the active credential except the ciphertext."""
        return WorkspaceInfo.model_validate(self._get_active_row(app_name, workspace_id))
