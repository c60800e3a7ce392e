"""
Wires credential store, cache and rate limiter into NotionService instances.
"""

from typing import Optional

import requests
from sqlalchemy.orm import Session

from ..utils.encryption_utils import TokenEncryptor
from ..utils.rate_limiter import SlidingWindowRateLimiter
from ..utils.response_cache import ResponseCache
from .credential_service import CredentialStore
from .notion_service import NotionService


class NotionServiceFactory:
    """
    Builds NotionService instances that share one cache and one rate limiter.

    The factory owns those two objects, so every service it creates is
    throttled against the same per-workspace windows. Storage is initialized
    once, on construction.
    """

    def __init__(
        self,
        session: Session,
        encryptor: Optional[TokenEncryptor] = None,
        cache: Optional[ResponseCache] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        http_session: Optional[requests.Session] = None,
    ):
        self.credential_store = CredentialStore(session, encryptor or TokenEncryptor())
        self.cache = cache or ResponseCache()
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter()
        self.http_session = http_session

        self.credential_store.initialize()

    def create(self, app_name: str, workspace_id: str) -> NotionService:
        """
        Service for an already stored credential.

        Raises:
            CredentialNotFoundError: No active credential for the pair
            DecryptionFailure: The stored token could not be decrypted
        """
        return NotionService(
            self.credential_store,
            self.cache,
            self.rate_limiter,
            app_name,
            workspace_id,
            http_session=self.http_session,
        )

    def create_with_credentials(
        self,
        app_name: str,
        workspace_id: str,
        token: str,
        workspace_name: Optional[str] = None,
    ) -> NotionService:
        """Store (or replace) the credential, then build its service."""
        self.credential_store.store(app_name, workspace_id, token, workspace_name)
        return self.create(app_name, workspace_id)
