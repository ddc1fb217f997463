"""Salary snapshot, subject pointer and component catalog models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from hrms_core.exceptions import ImmutableRecordError
from hrms_core.models.base import TenantBase, TimestampMixin, utcnow


class Employee(TenantBase, TimestampMixin):
    """Employee record (subject of salary snapshots)."""

    __tablename__ = "employee"

    employee_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    employee_code: Mapped[str | None] = mapped_column(String, nullable=True)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    designation: Mapped[str | None] = mapped_column(String, nullable=True)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    location: Mapped[str | None] = mapped_column(String, nullable=True)
    joining_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        UniqueConstraint("tenant_id", "employee_code", name="employee_tenant_code_unique"),
        CheckConstraint(
            "status IN ('active', 'terminated', 'on_leave')",
            name="employee_status_check",
        ),
    )


class Candidate(TenantBase, TimestampMixin):
    """Candidate in onboarding (subject of offer/joining letters)."""

    __tablename__ = "candidate"

    candidate_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    designation: Mapped[str | None] = mapped_column(String, nullable=True)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    location: Mapped[str | None] = mapped_column(String, nullable=True)
    joining_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="offered")


class SalarySnapshotRecord(TenantBase, TimestampMixin):
    """Immutable, versioned salary structure of one subject.

    Rows are append-only: UPDATE and DELETE are rejected at flush time.
    """

    __tablename__ = "salary_snapshot"

    snapshot_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_type: Mapped[str] = mapped_column(String, nullable=False, default="employee")
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String, nullable=False, default="MANUAL")
    effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    annual_ctc: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    defaults_applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    components: Mapped[list[dict[str, Any]]] = mapped_column(nullable=False)
    breakdown: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)
    previous_version: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    __table_args__ = (
        UniqueConstraint("subject_id", "version", name="salary_snapshot_subject_version_unique"),
        Index("ix_salary_snapshot_tenant_subject", "tenant_id", "subject_id"),
        CheckConstraint("version >= 1", name="salary_snapshot_version_positive"),
        CheckConstraint(
            "subject_type IN ('employee', 'candidate')",
            name="salary_snapshot_subject_type_check",
        ),
    )


@event.listens_for(SalarySnapshotRecord, "before_update")
def _reject_snapshot_update(mapper: Any, connection: Any, target: SalarySnapshotRecord) -> None:
    raise ImmutableRecordError(
        "salary snapshot", f"{target.subject_id} v{target.version}", "update"
    )


@event.listens_for(SalarySnapshotRecord, "before_delete")
def _reject_snapshot_delete(mapper: Any, connection: Any, target: SalarySnapshotRecord) -> None:
    raise ImmutableRecordError(
        "salary snapshot", f"{target.subject_id} v{target.version}", "delete"
    )


class SubjectSalaryPointer(TenantBase):
    """Per-subject version counter and current-snapshot pointer."""

    __tablename__ = "subject_salary_pointer"

    subject_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_type: Mapped[str] = mapped_column(String, nullable=False, default="employee")
    current_version: Mapped[int] = mapped_column(Integer, nullable=False)
    latest_version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "current_version >= 1 AND current_version <= latest_version",
            name="subject_salary_pointer_current_check",
        ),
    )


class ComponentDefinition(TenantBase, TimestampMixin):
    """Catalog entry (earning, deduction or benefit) that resolves into components."""

    __tablename__ = "component_definition"

    definition_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    calculation_type: Mapped[str] = mapped_column(String, nullable=False, default="FIXED")
    amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    percentage: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)
    pro_rata: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    removable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="component_definition_tenant_code_unique"),
        CheckConstraint(
            "category IN ('earning', 'employeeDeduction', 'employerContribution')",
            name="component_definition_category_check",
        ),
        CheckConstraint(
            "calculation_type IN ('FIXED', 'PERCENT_OF_BASIC', 'PERCENT_OF_CTC')",
            name="component_definition_calc_type_check",
        ),
    )
