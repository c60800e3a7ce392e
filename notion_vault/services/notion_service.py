"""
Rate-limited, cached Notion API client bound to one app and workspace.

Every call follows the same path: read-only operations consult the response
cache first and return without touching the limiter or the network on a hit.
On a miss the limiter admits the call, the request is sent, and only a
successful response is recorded with the limiter, stamped on the credential
and cached. Mutations invalidate the entries they make stale.

Cache keys are namespaced by app and workspace because one cache may be
shared by services for several workspaces.
"""

from typing import Any, Dict, Iterator, List, Optional

import requests

from ..config import CacheConfig, NotionApiConfig, get_config
from ..constants import CacheKeyPrefix, HttpMethod, Limits
from ..context.workspace_context import workspace_context
from ..exceptions import InvalidResponseError, NetworkError, RemoteApiError
from ..utils.hash_utils import build_cache_key
from ..utils.logger import get_logger
from ..utils.rate_limiter import SlidingWindowRateLimiter
from ..utils.response_cache import ResponseCache
from .credential_service import CredentialStore, validate_token_format


def clamp_page_size(page_size: int) -> int:
    """Notion accepts 1-100 results per page."""
    return min(max(int(page_size), Limits.MIN_PAGE_SIZE), Limits.MAX_PAGE_SIZE)


def parse_error_message(data: Dict[str, Any]) -> str:
    """Extract the human-readable message from a Notion error body."""
    if data.get("message"):
        return data["message"]
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return "Unknown Notion API error"


def send_request(
    http: requests.Session,
    config: NotionApiConfig,
    token: str,
    method: str,
    endpoint: str,
    payload: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Perform one authenticated Notion API call and decode the response.

    Redirects are not followed. A body that is not a JSON object is an
    InvalidResponseError whatever the status; otherwise a status of 400 or
    above becomes a RemoteApiError carrying Notion's message.

    Raises:
        NetworkError: Timeout or transport failure
        InvalidResponseError: Body is not a JSON object
        RemoteApiError: HTTP status >= 400
    """
    headers = {
        "Authorization": f"Bearer {token}",
        "Notion-Version": config.api_version,
        "Content-Type": "application/json",
        "User-Agent": config.user_agent,
    }
    url = f"{config.base_url}{endpoint}"

    try:
        response = http.request(
            method,
            url,
            headers=headers,
            json=payload if method in (HttpMethod.POST.value, HttpMethod.PATCH.value) else None,
            params=params,
            timeout=config.timeout_seconds,
            allow_redirects=False,
        )
    except requests.Timeout as e:
        raise NetworkError(
            f"Notion API request timed out after {config.timeout_seconds}s",
            timed_out=True,
            cause=e,
            method=method,
            endpoint=endpoint,
        )
    except requests.RequestException as e:
        raise NetworkError(
            f"HTTP request failed: {e}", cause=e, method=method, endpoint=endpoint
        )

    try:
        data = response.json()
    except ValueError as e:
        raise InvalidResponseError(
            http_status=response.status_code, cause=e, method=method, endpoint=endpoint
        )
    if not isinstance(data, dict):
        raise InvalidResponseError(
            http_status=response.status_code, method=method, endpoint=endpoint
        )

    if response.status_code >= 400:
        raise RemoteApiError(
            parse_error_message(data),
            http_status=response.status_code,
            notion_code=data.get("code"),
            method=method,
            endpoint=endpoint,
        )

    return data


def validate_token(
    token: str,
    config: Optional[NotionApiConfig] = None,
    http_session: Optional[requests.Session] = None,
) -> Dict[str, Any]:
    """
    Check a raw token against Notion without storing it.

    Issues ``POST /search`` with ``page_size=1``. Not rate limited: the
    token is not yet associated with any workspace.

    Returns:
        The search response (objects the integration can see)

    Raises:
        ValidationError: Token format is wrong; nothing is sent
        RemoteApiError: Notion rejected the token (``is_auth_error`` for 401/403)
    """
    validate_token_format(token)
    config = config or get_config().notion
    payload = {"page_size": 1}
    if http_session is not None:
        return send_request(
            http_session, config, token, HttpMethod.POST.value, "/search", payload=payload
        )
    with requests.Session() as http:
        return send_request(http, config, token, HttpMethod.POST.value, "/search", payload=payload)


class NotionService:
    """
    Notion API client for one ``(app_name, workspace_id)``.

    The credential is loaded and decrypted once, at construction.

    Example:
        service = NotionService(store, ResponseCache(), SlidingWindowRateLimiter(), "admintool", "ws-1")
        for page in service.iter_database_pages(database_id):
            ...
    """

    def __init__(
        self,
        credential_store: CredentialStore,
        cache: ResponseCache,
        rate_limiter: SlidingWindowRateLimiter,
        app_name: str,
        workspace_id: str,
        config: Optional[NotionApiConfig] = None,
        cache_config: Optional[CacheConfig] = None,
        http_session: Optional[requests.Session] = None,
    ):
        """
        Raises:
            CredentialNotFoundError: No active credential for the pair
            DecryptionFailure: The stored token could not be decrypted
        """
        app_config = get_config()
        self.credential_store = credential_store
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.app_name = app_name
        self.workspace_id = workspace_id
        self.config = config or app_config.notion
        self.ttl = cache_config or app_config.cache
        self.logger = get_logger()

        self._credential = credential_store.get(app_name, workspace_id)
        self._owns_http = http_session is None
        self.http = requests.Session() if http_session is None else http_session

    def close(self) -> None:
        """Close the HTTP session if this service created it."""
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "NotionService":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def workspace_name(self) -> Optional[str]:
        return self._credential.workspace_name

    def _key(self, prefix: CacheKeyPrefix, *identifiers: str, params=None) -> str:
        return build_cache_key(
            self.app_name, self.workspace_id, prefix.value, *identifiers, params=params
        )

    def _prefix(self, prefix: CacheKeyPrefix, *identifiers: str) -> str:
        return self._key(prefix, *identifiers) + ":"

    def _request(
        self,
        method: HttpMethod,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        with workspace_context(self.app_name, self.workspace_id):
            self.rate_limiter.wait_if_necessary(self.app_name, self.workspace_id)
            try:
                data = send_request(
                    self.http,
                    self.config,
                    self._credential.token,
                    method.value,
                    endpoint,
                    payload=payload,
                    params=params,
                )
            except BaseException:
                # Failed attempts do not consume quota
                self.rate_limiter.release(self.app_name, self.workspace_id)
                raise

            self.rate_limiter.record_request(self.app_name, self.workspace_id)
            self.credential_store.record_usage(self.app_name, self.workspace_id)
            self.logger.debug(
                "Notion API call succeeded",
                extra={"method": method.value, "endpoint": endpoint},
            )
            return data

    def _cached_request(
        self,
        cache_key: str,
        ttl_seconds: int,
        method: HttpMethod,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        data = self._request(method, endpoint, payload=payload, params=params)
        self.cache.set(cache_key, data, ttl_seconds)
        return data

    def query_database(
        self,
        database_id: str,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
        page_size: int = Limits.DEFAULT_PAGE_SIZE,
        start_cursor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Query a database (``POST /databases/{id}/query``). Cached for 5 minutes.

        Empty filters and sorts are omitted from the request.
        """
        payload: Dict[str, Any] = {"page_size": clamp_page_size(page_size)}
        if filter:
            payload["filter"] = filter
        if sorts:
            payload["sorts"] = sorts
        if start_cursor:
            payload["start_cursor"] = start_cursor

        return self._cached_request(
            self._key(CacheKeyPrefix.DATABASE_QUERY, database_id, params=payload),
            self.ttl.database_query_ttl,
            HttpMethod.POST,
            f"/databases/{database_id}/query",
            payload=payload,
        )

    def iter_database_pages(
        self,
        database_id: str,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
    ) -> Iterator[Dict[str, Any]]:
        """
        Yield every page of a database query, following ``next_cursor``.

        Lazy: nothing is requested until iteration starts. Each call starts
        from the first page. Errors propagate and end the iteration.
        """
        cursor = None
        while True:
            result = self.query_database(
                database_id, filter, sorts, Limits.MAX_PAGE_SIZE, cursor
            )
            yield from result.get("results") or []

            cursor = result.get("next_cursor")
            if not cursor:
                return

    def get_page(self, page_id: str) -> Dict[str, Any]:
        """Retrieve a page (``GET /pages/{id}``). Cached for 10 minutes."""
        return self._cached_request(
            self._key(CacheKeyPrefix.PAGE, page_id),
            self.ttl.page_ttl,
            HttpMethod.GET,
            f"/pages/{page_id}",
        )

    def update_page(self, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update page properties (``PATCH /pages/{id}``).

        Drops the cached page and its cached property values.
        """
        data = self._request(
            HttpMethod.PATCH, f"/pages/{page_id}", payload={"properties": properties}
        )
        self.cache.delete(self._key(CacheKeyPrefix.PAGE, page_id))
        self.cache.invalidate_prefix(self._prefix(CacheKeyPrefix.PAGE_PROPERTY, page_id))
        return data

    def create_page(
        self,
        parent_database_id: str,
        properties: Dict[str, Any],
        children: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Create a page in a database (``POST /pages``).

        Drops cached query results for the parent database.
        """
        payload: Dict[str, Any] = {
            "parent": {"database_id": parent_database_id},
            "properties": properties,
        }
        if children is not None:
            payload["children"] = children

        data = self._request(HttpMethod.POST, "/pages", payload=payload)
        self.cache.invalidate_prefix(
            self._prefix(CacheKeyPrefix.DATABASE_QUERY, parent_database_id)
        )
        return data

    def get_page_property(self, page_id: str, property_id: str) -> Dict[str, Any]:
        """Retrieve one property value. Cached for 10 minutes."""
        return self._cached_request(
            self._key(CacheKeyPrefix.PAGE_PROPERTY, page_id, property_id),
            self.ttl.page_property_ttl,
            HttpMethod.GET,
            f"/pages/{page_id}/properties/{property_id}",
        )

    def get_block_children(
        self,
        block_id: str,
        page_size: int = Limits.DEFAULT_PAGE_SIZE,
        start_cursor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """List child blocks (``GET /blocks/{id}/children``). Cached for 10 minutes."""
        params: Dict[str, Any] = {"page_size": clamp_page_size(page_size)}
        if start_cursor:
            params["start_cursor"] = start_cursor

        return self._cached_request(
            self._key(CacheKeyPrefix.BLOCKS, block_id, params=params),
            self.ttl.blocks_ttl,
            HttpMethod.GET,
            f"/blocks/{block_id}/children",
            params=params,
        )

    def append_block_children(
        self, block_id: str, children: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """
        Append blocks (``PATCH /blocks/{id}/children``).

        Drops every cached page of that block's children.
        """
        data = self._request(
            HttpMethod.PATCH, f"/blocks/{block_id}/children", payload={"children": children}
        )
        self.cache.invalidate_prefix(self._prefix(CacheKeyPrefix.BLOCKS, block_id))
        return data

    def search(
        self,
        query: str = "",
        sort: Optional[str] = None,
        filter: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Search the workspace (``POST /search``). Cached for 5 minutes.

        Args:
            query: Text to match against titles
            sort: Timestamp to sort by, descending (e.g. ``"last_edited_time"``)
            filter: Notion search filter, e.g. ``{"property": "object", "value": "database"}``
        """
        payload: Dict[str, Any] = {"query": query}
        if sort:
            payload["sort"] = {"direction": "descending", "timestamp": sort}
        if filter:
            payload["filter"] = filter

        return self._cached_request(
            self._key(CacheKeyPrefix.SEARCH, params=payload),
            self.ttl.search_ttl,
            HttpMethod.POST,
            "/search",
            payload=payload,
        )
