"""
Workspace context management for the credential vault.

Records which (app, workspace) pair the current thread is acting for, so log
records emitted deep inside the store, limiter or HTTP layer can be attributed
to a tenant without threading the identifiers through every call.
"""

import threading
from contextlib import contextmanager
from typing import Generator, Optional, Tuple

from ..exceptions import ErrorCode, ValidationError


class WorkspaceContext:
    """
    Manages the current app/workspace pair using thread-local storage.
    """

    _thread_local = threading.local()

    @classmethod
    def set_current(cls, app_name: str, workspace_id: str) -> None:
        """
        Set the current app and workspace for the execution context.

        Raises:
            ValidationError: If either identifier is empty
        """
        for field, value in (("app_name", app_name), ("workspace_id", workspace_id)):
            if not value or not isinstance(value, str) or not value.strip():
                raise ValidationError(
                    f"{field} must be a non-empty string",
                    error_code=ErrorCode.MISSING_REQUIRED,
                    field=field,
                )

        cls._thread_local.app_name = app_name.strip()
        cls._thread_local.workspace_id = workspace_id.strip()

    @classmethod
    def get_current(cls) -> Tuple[Optional[str], Optional[str]]:
        """Return ``(app_name, workspace_id)``, either of which may be None."""
        return (
            getattr(cls._thread_local, "app_name", None),
            getattr(cls._thread_local, "workspace_id", None),
        )

    @classmethod
    def clear(cls) -> None:
        """Clear the current app and workspace."""
        for attr in ("app_name", "workspace_id"):
            if hasattr(cls._thread_local, attr):
                delattr(cls._thread_local, attr)


@contextmanager
def workspace_context(app_name: str, workspace_id: str) -> Generator[None, None, None]:
    """
    Scope the workspace context to a block, restoring the previous one afterwards.

    Example:
        with workspace_context("admintool", "ws-1"):
            service.get_page(page_id)
    """
    previous = WorkspaceContext.get_current()
    WorkspaceContext.set_current(app_name, workspace_id)
    try:
        yield
    finally:
        if previous[0] and previous[1]:
            WorkspaceContext.set_current(*previous)
        else:
            WorkspaceContext.clear()
