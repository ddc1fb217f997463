"""Document view configuration and generated document ledger models."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms_core.models.base import TenantBase, TimestampMixin, utcnow

DOCUMENT_TYPE_CHECK = (
    "document_type IN ('JOINING_LETTER', 'OFFER_LETTER', 'CTC_ANNEXURE', 'PAYSLIP')"
)


class DocumentViewConfigRecord(TenantBase, TimestampMixin):
    """Per tenant, per document type section layout.

    At most one row per (tenant_id, document_type) may be active; a partial
    unique index enforces it in the database.
    """

    __tablename__ = "document_view_config"

    config_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    document_type: Mapped[str] = mapped_column(String, nullable=False)
    sections: Mapped[list[dict[str, Any]]] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index(
            "uq_document_view_config_active",
            "tenant_id",
            "document_type",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        CheckConstraint(DOCUMENT_TYPE_CHECK, name="document_view_config_type_check"),
    )


class GeneratedDocument(TenantBase, TimestampMixin):
    """An issued document with its own copy of the rendered salary data."""

    __tablename__ = "generated_document"

    document_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_type: Mapped[str] = mapped_column(String, nullable=False, default="employee")
    document_type: Mapped[str] = mapped_column(String, nullable=False)
    template_ref: Mapped[str] = mapped_column(String, nullable=False)
    snapshot_version: Mapped[int] = mapped_column(Integer, nullable=False)
    render_model: Mapped[dict[str, Any]] = mapped_column(nullable=False)
    render_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_data: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)
    pdf_location: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="generated")
    generated_by: Mapped[str | None] = mapped_column(String, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_generated_document_tenant_subject", "tenant_id", "subject_id"),
        Index("ix_generated_document_type", "document_type"),
        CheckConstraint(DOCUMENT_TYPE_CHECK, name="generated_document_type_check"),
        CheckConstraint(
            "status IN ('generated', 'sent', 'viewed', 'accepted', 'rejected', 'expired')",
            name="generated_document_status_check",
        ),
    )

    events: Mapped[list[DocumentStatusEvent]] = relationship(
        back_populates="document",
        order_by="DocumentStatusEvent.sequence",
        lazy="raise",
    )


class DocumentStatusEvent(TenantBase):
    """Audit row for each status change of a generated document."""

    __tablename__ = "document_status_event"

    event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    document_id: Mapped[UUID] = mapped_column(
        ForeignKey("generated_document.document_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    from_status: Mapped[str | None] = mapped_column(String, nullable=True)
    to_status: Mapped[str] = mapped_column(String, nullable=False)
    actor: Mapped[str | None] = mapped_column(String, nullable=True)
    reason: Mapped[str | None] = mapped_column(String, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    document: Mapped[GeneratedDocument] = relationship(back_populates="events", lazy="raise")
