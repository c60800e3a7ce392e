"""Enums and fixed values shared across the package."""

from enum import Enum


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    DATABASE_URL = "DATABASE_URL"
    LOG_LEVEL = "LOG_LEVEL"
    ENCRYPTION_MASTER_KEY = "ENCRYPTION_MASTER_KEY"
    NOTION_API_VERSION = "NOTION_API_VERSION"
    NOTION_RATE_LIMIT_PER_MINUTE = "NOTION_RATE_LIMIT_PER_MINUTE"


class TokenPrefix(str, Enum):
    """Accepted Notion integration token prefixes (older and newer formats)."""

    LEGACY_SECRET = "secret_"
    INTEGRATION = "ntn_"


class HttpMethod(str, Enum):
    """HTTP methods used against the Notion API."""

    GET = "GET"
    POST = "POST"
    PATCH = "PATCH"


class CacheKeyPrefix(str, Enum):
    """Prefixes for response cache keys, one per read operation."""

    DATABASE_QUERY = "database_query"
    PAGE = "page"
    PAGE_PROPERTY = "page_property"
    BLOCKS = "blocks"
    SEARCH = "search"


class NotionApi:
    """Notion REST API coordinates."""

    BASE_URL = "https://api.notion.com/v1"
    # Update when Notion releases a new stable API version
    VERSION = "2022-06-28"
    USER_AGENT = "NotionVault/1.0"
    # Documented hard limit is 3 req/s; 150/min leaves a 0.5 req/s margin
    HARD_LIMIT_PER_MINUTE = 180


class Limits:
    """Rate limiter and pagination bounds."""

    RATE_LIMIT_REQUESTS_PER_MINUTE = 150
    RATE_LIMIT_WINDOW_SECONDS = 60
    RATE_LIMIT_SAFETY_BUFFER_SECONDS = 0.1
    MIN_PAGE_SIZE = 1
    MAX_PAGE_SIZE = 100
    DEFAULT_PAGE_SIZE = 100


class CacheTTL:
    """Response cache lifetimes in seconds."""

    DEFAULT = 300
    DATABASE_QUERY = 300
    SEARCH = 300
    PAGE = 600
    PAGE_PROPERTY = 600
    BLOCKS = 600


class Timeouts:
    EXTERNAL_API_CALL = 30  # seconds
