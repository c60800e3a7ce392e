"""Context management for workspace attribution."""

from .workspace_context import WorkspaceContext, workspace_context

__all__ = ["WorkspaceContext", "workspace_context"]
