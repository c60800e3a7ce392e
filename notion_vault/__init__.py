"""
Multi-tenant vault for Notion integration tokens with a rate-limited,
cached API client.
"""

from .config import AppConfig, get_config, reset_config, set_config
from .exceptions import (
    BaseError,
    ConfigurationError,
    CredentialNotFoundError,
    DecryptionError,
    DecryptionFailure,
    IntegrityError,
    InvalidResponseError,
    NetworkError,
    NotFoundError,
    NotionApiError,
    RemoteApiError,
    StorageError,
    ValidationError,
)
from .services import (
    CredentialStore,
    NotionService,
    NotionServiceFactory,
    WorkspaceClient,
    validate_token,
)
from .utils import ResponseCache, SlidingWindowRateLimiter, TokenEncryptor

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "get_config",
    "set_config",
    "reset_config",
    "BaseError",
    "ConfigurationError",
    "CredentialNotFoundError",
    "DecryptionError",
    "DecryptionFailure",
    "IntegrityError",
    "InvalidResponseError",
    "NetworkError",
    "NotFoundError",
    "NotionApiError",
    "RemoteApiError",
    "StorageError",
    "ValidationError",
    "CredentialStore",
    "NotionService",
    "NotionServiceFactory",
    "WorkspaceClient",
    "validate_token",
    "ResponseCache",
    "SlidingWindowRateLimiter",
    "TokenEncryptor",
]
