"""Base model classes for SQLAlchemy ORM.

Two declarative bases keep the planes apart: ``ControlBase`` tables live in
the shared control-plane database (the tenant directory), ``TenantBase``
tables are created inside every tenant's own database.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


_TYPE_MAP = {
    UUID: Uuid(as_uuid=True),
    datetime: DateTime(timezone=True),
    dict[str, Any]: JSONType,
    list[dict[str, Any]]: JSONType,
}


class ControlBase(DeclarativeBase):
    """Base class for control-plane models."""

    type_annotation_map = _TYPE_MAP

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


class TenantBase(DeclarativeBase):
    """Base class for models stored in a tenant database."""

    type_annotation_map = _TYPE_MAP

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


class TimestampMixin:
    """Mixin for models with created_at timestamp."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
