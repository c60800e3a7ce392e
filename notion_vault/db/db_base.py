"""
Column types and mixins shared by the vault's models.

Works on SQLite (development and tests) and PostgreSQL (production).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON as GenericJSON
from sqlalchemy import Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# JSONB on PostgreSQL; None is stored as SQL NULL rather than the JSON literal
JSON = GenericJSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)


class UUIDMixin:
    """UUID string primary keys."""

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
