"""
Credential model: one encrypted Notion token per app and workspace.

Just the data structure - the store owns the behaviour.
"""

from sqlalchemy import Boolean, Column, DateTime, Index, String, Text

from .db_base import JSON, TimestampMixin, UUIDMixin
from .db_config import Base


class NotionCredential(Base, UUIDMixin, TimestampMixin):
    """Stored Notion credential. ``api_key_encrypted`` never holds plaintext."""

    __tablename__ = "notion_credentials"

    app_name = Column(String(100), nullable=False)
    workspace_id = Column(String(100), nullable=False)
    api_key_encrypted = Column(Text, nullable=False)
    workspace_name = Column(String(255), nullable=True)

    # Target configuration
    notion_database_id = Column(String(100), nullable=True)
    notion_page_id = Column(String(100), nullable=True)
    config = Column(JSON, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_notion_credentials_app_workspace", "app_name", "workspace_id", unique=True),
        Index("idx_notion_credentials_app", "app_name"),
        Index("idx_notion_credentials_database_id", "notion_database_id"),
        Index("idx_notion_credentials_page_id", "notion_page_id"),
    )

    def __repr__(self) -> str:
        return (
            f"NotionCredential(app_name='{self.app_name}', "
            f"workspace_id='{self.workspace_id}', is_active={self.is_active})"
        )
