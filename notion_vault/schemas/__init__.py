from .credential_schemas import (
    CredentialSummary,
    DecryptedCredential,
    WorkspaceConfiguration,
    WorkspaceInfo,
)

__all__ = [
    "CredentialSummary",
    "DecryptedCredential",
    "WorkspaceConfiguration",
    "WorkspaceInfo",
]
