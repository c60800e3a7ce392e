from .credential_service import CredentialStore, validate_token_format
from .notion_service import NotionService, validate_token
from .notion_service_factory import NotionServiceFactory
from .workspace_client import WorkspaceClient

__all__ = [
    "CredentialStore",
    "NotionService",
    "NotionServiceFactory",
    "WorkspaceClient",
    "validate_token",
    "validate_token_format",
]
