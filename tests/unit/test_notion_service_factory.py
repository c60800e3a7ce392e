"""Unit tests for NotionServiceFactory and WorkspaceClient."""

from unittest.mock import Mock

import pytest
import requests

from notion_vault.exceptions import CredentialNotFoundError, ErrorCode, ValidationError
from notion_vault.services.notion_service import NotionService
from notion_vault.services.notion_service_factory import NotionServiceFactory
from notion_vault.services.workspace_client import WorkspaceClient
from tests.fixtures.sample_data import TEST_APP, TEST_TOKEN, TEST_WORKSPACE


@pytest.fixture
def http() -> Mock:
    session = Mock(spec=requests.Session)
    response = Mock(spec=requests.Response)
    response.status_code = 200
    response.json.return_value = {"object": "list", "results": [], "next_cursor": None}
    session.request.return_value = response
    return session


@pytest.fixture
def factory(db_session, encryptor, cache, rate_limiter, http) -> NotionServiceFactory:
    return NotionServiceFactory(
        db_session, encryptor, cache=cache, rate_limiter=rate_limiter, http_session=http
    )


@pytest.fixture
def client(factory: NotionServiceFactory) -> WorkspaceClient:
    factory.credential_store.store(TEST_APP, TEST_WORKSPACE, TEST_TOKEN, "Marketing")
    return WorkspaceClient(factory, TEST_APP)


class TestNotionServiceFactory:
    def test_create_with_credentials(self, factory: NotionServiceFactory):
        service = factory.create_with_credentials(TEST_APP, TEST_WORKSPACE, TEST_TOKEN, "Marketing")

        assert isinstance(service, NotionService)
        assert service.workspace_name == "Marketing"
        assert factory.credential_store.get(TEST_APP, TEST_WORKSPACE).token == TEST_TOKEN

    def test_create_missing_credential(self, factory: NotionServiceFactory):
        with pytest.raises(CredentialNotFoundError):
            factory.create(TEST_APP, TEST_WORKSPACE)

    def test_services_share_cache_and_limiter(self, factory: NotionServiceFactory):
        first = factory.create_with_credentials(TEST_APP, "ws-1", TEST_TOKEN)
        second = factory.create_with_credentials(TEST_APP, "ws-2", "ntn_second")

        assert first.cache is second.cache is factory.cache
        assert first.rate_limiter is second.rate_limiter is factory.rate_limiter

    def test_shared_limiter_tracks_each_workspace(self, factory: NotionServiceFactory):
        factory.create_with_credentials(TEST_APP, "ws-1", TEST_TOKEN).get_page("p1")
        factory.create(TEST_APP, "ws-1").get_page("p2")

        assert factory.rate_limiter.get_current_request_count(TEST_APP, "ws-1") == 2
        assert factory.rate_limiter.get_current_request_count(TEST_APP, "ws-2") == 0

    def test_invalid_token_is_rejected(self, factory: NotionServiceFactory):
        with pytest.raises(ValidationError):
            factory.create_with_credentials(TEST_APP, TEST_WORKSPACE, "bogus")

    def test_defaults(self, db_session):
        factory = NotionServiceFactory(db_session)

        assert factory.cache is not None
        assert factory.rate_limiter.limit == 150


class TestWorkspaceClient:
    def test_requires_workspace(self, client: WorkspaceClient):
        assert client.current_workspace is None

        with pytest.raises(ValidationError) as exc_info:
            client.get_service()

        assert exc_info.value.error_code == ErrorCode.MISSING_REQUIRED

    def test_set_workspace(self, client: WorkspaceClient):
        assert client.set_workspace(TEST_WORKSPACE) is client
        assert client.current_workspace == TEST_WORKSPACE

    def test_set_unknown_workspace(self, client: WorkspaceClient):
        with pytest.raises(CredentialNotFoundError):
            client.set_workspace("unknown")

        assert client.current_workspace is None

    def test_service_is_memoised(self, client: WorkspaceClient):
        client.set_workspace(TEST_WORKSPACE)

        assert client.get_service() is client.get_service()

    def test_query_without_configured_database(self, client: WorkspaceClient, http: Mock):
        client.set_workspace(TEST_WORKSPACE)

        with pytest.raises(ValidationError) as exc_info:
            client.query_database()

        assert exc_info.value.context["field"] == "database_id"
        http.request.assert_not_called()

    def test_query_uses_configured_database(self, client: WorkspaceClient, http: Mock):
        client.set_workspace(TEST_WORKSPACE).update_configuration(database_id="db-configured")

        client.query_database(filter={"property": "Done", "checkbox": {"equals": True}})

        method, url = http.request.call_args.args
        assert method == "POST"
        assert url.endswith("/databases/db-configured/query")

    def test_create_page_uses_configured_database(self, client: WorkspaceClient, http: Mock):
        client.set_workspace(TEST_WORKSPACE).update_configuration(database_id="db-configured")

        client.create_page({"Name": {"title": []}})

        assert http.request.call_args.kwargs["json"]["parent"] == {"database_id": "db-configured"}

    def test_explicit_database_wins(self, client: WorkspaceClient, http: Mock):
        client.set_workspace(TEST_WORKSPACE).update_configuration(database_id="db-configured")

        client.query_database("db-explicit")

        assert http.request.call_args.args[1].endswith("/databases/db-explicit/query")

    def test_delegates_reads_and_writes(self, client: WorkspaceClient, http: Mock):
        client.set_workspace(TEST_WORKSPACE)

        client.get_page("p1")
        client.update_page("p1", {})
        client.search("notes")
        client.get_block_children("b1")
        client.append_block_children("b1", [])

        urls = [call.args[1] for call in http.request.call_args_list]
        assert [url.split("/v1")[1] for url in urls] == [
            "/pages/p1",
            "/pages/p1",
            "/search",
            "/blocks/b1/children",
            "/blocks/b1/children",
        ]

    def test_configuration_round_trip(self, client: WorkspaceClient):
        client.set_workspace(TEST_WORKSPACE)

        assert client.update_configuration("db-1", "page-1", {"sync": "daily"}) is True

        configuration = client.get_configuration()
        assert configuration.database_id == "db-1"
        assert configuration.config == {"sync": "daily"}
        assert client.get_workspace_info().notion_page_id == "page-1"

    def test_get_workspaces(self, client: WorkspaceClient, factory: NotionServiceFactory):
        factory.credential_store.store(TEST_APP, "ws-archive", TEST_TOKEN, "Archive")

        names = [summary.workspace_name for summary in client.get_workspaces()]

        assert names == ["Archive", "Marketing"]

    def test_clear_cache_for_workspace(self, client: WorkspaceClient, http: Mock):
        client.set_workspace(TEST_WORKSPACE)
        service = client.get_service()
        client.get_page("p1")

        client.clear_cache(TEST_WORKSPACE)

        assert client.get_service() is not service
        client.get_page("p1")
        assert http.request.call_count == 2

    def test_clear_cache_keeps_other_apps(
        self, client: WorkspaceClient, factory: NotionServiceFactory, http: Mock
    ):
        other = factory.create_with_credentials("other-app", TEST_WORKSPACE, TEST_TOKEN)
        other.get_page("p1")
        client.set_workspace(TEST_WORKSPACE).get_page("p1")

        client.clear_cache()

        other.get_page("p1")
        assert http.request.call_count == 2

    def test_record_usage(self, client: WorkspaceClient):
        client.set_workspace(TEST_WORKSPACE)

        assert client.record_usage() is client
        assert client.get_workspace_info().last_used_at is not None

    def test_clear_cache_closes_services(self, client: WorkspaceClient):
        service = client.set_workspace(TEST_WORKSPACE).get_service()
        service.close = Mock()

        client.clear_cache()

        service.close.assert_called_once_with()

    def test_clear_cache_keeps_app_sharing_a_name_prefix(
        self, factory: NotionServiceFactory, http: Mock
    ):
        factory.create_with_credentials("a:b", TEST_WORKSPACE, TEST_TOKEN).get_page("p1")
        factory.credential_store.store("a", TEST_WORKSPACE, TEST_TOKEN)

        WorkspaceClient(factory, "a").clear_cache()

        factory.create("a:b", TEST_WORKSPACE).get_page("p1")
        assert http.request.call_count == 1


class TestTenantIsolation:
    def test_colon_in_names_does_not_share_cached_pages(self, factory: NotionServiceFactory, http: Mock):
        first, second = Mock(spec=requests.Response), Mock(spec=requests.Response)
        first.status_code = second.status_code = 200
        first.json.return_value = {"object": "page", "id": "p1", "owner": "first"}
        second.json.return_value = {"object": "page", "id": "p1", "owner": "second"}
        http.request.side_effect = [first, second]

        owner_one = factory.create_with_credentials("a", "b:c", TEST_TOKEN).get_page("p1")
        owner_two = factory.create_with_credentials("a:b", "c", "ntn_second").get_page("p1")

        assert owner_one["owner"] == "first"
        assert owner_two["owner"] == "second"
        assert http.request.call_count == 2
