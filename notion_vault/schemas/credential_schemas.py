"""
Pydantic schemas for stored Notion credentials.

None of these read models expose the ciphertext. The decrypted token is held
as a ``SecretStr`` so it never shows up in reprs or log lines.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class DecryptedCredential(BaseModel):
    """Plaintext token and display name for one app/workspace."""

    model_config = ConfigDict(frozen=True)

    api_key: SecretStr = Field(..., description="Decrypted Notion integration token")
    workspace_name: Optional[str] = Field(None, description="Human-readable workspace name")

    @property
    def token(self) -> str:
        """The plaintext token. Do not log."""
        return self.api_key.get_secret_value()


class CredentialSummary(BaseModel):
    """Listing entry for a stored credential."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    workspace_id: str
    workspace_name: Optional[str] = None
    notion_database_id: Optional[str] = None
    notion_page_id: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    last_used_at: Optional[datetime] = None


class WorkspaceConfiguration(BaseModel):
    """Target database/page and free-form settings for a workspace.

    ``config`` is any JSON value and is returned exactly as stored.
    """

    database_id: Optional[str] = None
    page_id: Optional[str] = None
    config: Any = None


class WorkspaceInfo(BaseModel):
    """Full credential row minus the ciphertext."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    app_name: str
    workspace_id: str
    workspace_name: Optional[str] = None
    notion_database_id: Optional[str] = None
    notion_page_id: Optional[str] = None
    config: Any = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    last_used_at: Optional[datetime] = None
