"""
App-scoped convenience client that switches between stored workspaces.
"""

from typing import Any, Dict, List, Optional

from ..exceptions import CredentialNotFoundError, ErrorCode, ValidationError
from ..schemas.credential_schemas import CredentialSummary, WorkspaceConfiguration, WorkspaceInfo
from ..utils.hash_utils import join_key
from .notion_service import NotionService
from .notion_service_factory import NotionServiceFactory


class WorkspaceClient:
    """
    Facade over NotionServiceFactory for a single app.

    Select a workspace with ``set_workspace``; calls then go to that
    workspace's service, created on first use and reused afterwards.
    Database operations fall back to the workspace's configured target
    database when none is given.

    Example:
        client = WorkspaceClient(factory, "csv-importer").set_workspace("ws-1")
        client.create_page({"Name": {"title": [{"text": {"content": "Row"}}]}})
    """

    def __init__(self, factory: NotionServiceFactory, app_name: str):
        self.factory = factory
        self.app_name = app_name
        self.credential_store = factory.credential_store
        self._workspace_id: Optional[str] = None
        self._services: Dict[str, NotionService] = {}

    @property
    def current_workspace(self) -> Optional[str]:
        return self._workspace_id

    def set_workspace(self, workspace_id: str) -> "WorkspaceClient":
        """
        Select the workspace for subsequent calls.

        Raises:
            CredentialNotFoundError: No active credential for this app and workspace
        """
        try:
            self.credential_store.get_configuration(self.app_name, workspace_id)
        except CredentialNotFoundError as e:
            raise CredentialNotFoundError(
                f"Workspace '{workspace_id}' not found for app '{self.app_name}'",
                cause=e,
                app_name=self.app_name,
                workspace_id=workspace_id,
            )
        self._workspace_id = workspace_id
        return self

    def _require_workspace(self) -> str:
        if not self._workspace_id:
            raise ValidationError(
                "No workspace selected. Call set_workspace() first.",
                field="workspace_id",
                error_code=ErrorCode.MISSING_REQUIRED,
            )
        return self._workspace_id

    def get_service(self) -> NotionService:
        workspace_id = self._require_workspace()
        service = self._services.get(workspace_id)
        if service is None:
            service = self._services[workspace_id] = self.factory.create(
                self.app_name, workspace_id
            )
        return service

    def _target_database(self, database_id: Optional[str]) -> str:
        if database_id:
            return database_id
        configured = self.get_configuration().database_id
        if not configured:
            raise ValidationError(
                "No target database configured for this workspace",
                field="database_id",
                error_code=ErrorCode.MISSING_REQUIRED,
                app_name=self.app_name,
                workspace_id=self._workspace_id,
            )
        return configured

    def query_database(
        self,
        database_id: Optional[str] = None,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        service = self.get_service()
        return service.query_database(self._target_database(database_id), filter, sorts)

    def create_page(
        self, properties: Dict[str, Any], database_id: Optional[str] = None
    ) -> Dict[str, Any]:
        service = self.get_service()
        return service.create_page(self._target_database(database_id), properties)

    def get_page(self, page_id: str) -> Dict[str, Any]:
        return self.get_service().get_page(page_id)

    def update_page(self, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        return self.get_service().update_page(page_id, properties)

    def search(
        self,
        query: str = "",
        sort: Optional[str] = None,
        filter: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return self.get_service().search(query, sort, filter)

    def get_block_children(self, block_id: str) -> Dict[str, Any]:
        return self.get_service().get_block_children(block_id)

    def append_block_children(self, block_id: str, children: List[Dict[str, Any]]) -> Dict[str, Any]:
        return self.get_service().append_block_children(block_id, children)

    def get_configuration(self) -> WorkspaceConfiguration:
        return self.credential_store.get_configuration(self.app_name, self._require_workspace())

    def update_configuration(
        self,
        database_id: Optional[str] = None,
        page_id: Optional[str] = None,
        config: Any = None,
    ) -> bool:
        return self.credential_store.update_configuration(
            self.app_name, self._require_workspace(), database_id, page_id, config
        )

    def get_workspace_info(self) -> WorkspaceInfo:
        return self.credential_store.get_workspace_info(self.app_name, self._require_workspace())

    def get_workspaces(self) -> List[CredentialSummary]:
        """All workspaces stored for this app, including disabled ones."""
        return self.credential_store.list(self.app_name)

    def clear_cache(self, workspace_id: Optional[str] = None) -> None:
        """
        Close and forget memoised services and drop their cached responses.

        Limited to one workspace when ``workspace_id`` is given, otherwise
        everything belonging to this app.
        """
        if workspace_id:
            service = self._services.pop(workspace_id, None)
            if service is not None:
                service.close()
            self.factory.cache.invalidate_prefix(join_key(self.app_name, workspace_id) + ":")
        else:
            for service in self._services.values():
                service.close()
            self._services.clear()
            self.factory.cache.invalidate_prefix(join_key(self.app_name) + ":")

    def record_usage(self) -> "WorkspaceClient":
        self.credential_store.record_usage(self.app_name, self._require_workspace())
        return self
