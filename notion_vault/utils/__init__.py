"""Utility modules for the Notion credential vault."""

from .encryption_utils import TokenEncryptor, derive_key
from .hash_utils import build_cache_key, calculate_data_hash
from .logger import ContextAwareLogger, configure_logging, get_logger
from .rate_limiter import SlidingWindowRateLimiter
from .response_cache import ResponseCache

__all__ = [
    # Encryption
    "TokenEncryptor",
    "derive_key",
    # Hashing
    "build_cache_key",
    "calculate_data_hash",
    # Logging
    "ContextAwareLogger",
    "configure_logging",
    "get_logger",
    # Outbound call guards
    "ResponseCache",
    "SlidingWindowRateLimiter",
]
