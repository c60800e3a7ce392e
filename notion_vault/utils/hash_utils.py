"""
Hash utilities for deterministic request fingerprints.

Cache and limiter keys join percent-encoded segments with ":", so an
identifier containing ":" can never be mistaken for two segments. Response
cache keys end with a SHA-256 digest of the request parameters, serialized
with sorted keys so filters differing only in key order share an entry.
"""

import hashlib
import json
from typing import Any, Dict, Optional
from urllib.parse import quote

from pydantic_core import to_jsonable_python


def calculate_data_hash(data: Any, sort_keys: bool = True) -> str:
    """
    Calculate a deterministic SHA-256 hash of JSON-serializable data.

    Args:
        data: Value to hash
        sort_keys: Whether to sort dictionary keys for deterministic ordering

    Returns:
        Hex digest string
    """
    serialized = json.dumps(
        to_jsonable_python(data), sort_keys=sort_keys, separators=(",", ":")
    )
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def join_key(*segments: str) -> str:
    """``join_key("a", "b:c")`` gives ``"a:b%3Ac"``, distinct from ``join_key("a:b", "c")``."""
    return ":".join(quote(segment, safe="") for segment in segments)


def build_cache_key(prefix: str, *identifiers: str, params: Optional[Dict[str, Any]] = None) -> str:
    """
    Build a response cache key.

    ``build_cache_key("page", page_id)`` gives ``"page:<page_id>"``; when
    ``params`` is given a digest of them is appended as the last segment.
    Identifiers stay readable so related entries can be invalidated by prefix.
    """
    parts = [prefix, *identifiers]
    if params is not None:
        parts.append(calculate_data_hash(params))
    return join_key(*parts)
