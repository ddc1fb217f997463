"""Salary snapshot store: immutable, versioned salary structures."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import select

from hrms_core.composer.money import round_to_cents, to_decimal
from hrms_core.composer.types import (
    ComponentCategory,
    SalaryBreakdown,
    SalaryComponent,
    SalarySnapshot,
    SnapshotReason,
    SubjectType,
)
from hrms_core.exceptions import (
    ComponentViolation,
    InvalidComponentError,
    SnapshotNotFoundError,
    WriteConflictError,
)
from hrms_core.logging_config import LogContext, get_logger
from hrms_core.models import SalarySnapshotRecord, SubjectSalaryPointer
from hrms_core.schemas import parse_components
from hrms_core.tenancy import TenantHandle

logger = get_logger(__name__)

# attempts at allocating a version before a write conflict is surfaced
MAX_ALLOCATION_ATTEMPTS = 3

# (name, share of CTC, pro_rata, removable)
DEFAULT_CTC_SPLIT: tuple[tuple[str, Decimal, bool, bool], ...] = (
    ("Basic", Decimal("0.50"), True, False),
    ("Dearness Allowance", Decimal("0.30"), True, True),
    ("Allowance", Decimal("0.20"), False, True),
)


def default_earnings_from_ctc(annual_ctc: Decimal | int | str) -> list[SalaryComponent]:
    """Split an annual CTC into the default earnings (50/30/20)."""
    ctc = to_decimal(annual_ctc)
    if ctc <= 0:
        raise InvalidComponentError(
            [ComponentViolation(index=None, field="annual_ctc", message="must be greater than 0")]
        )

    monthly_ctc = ctc / 12
    return [
        SalaryComponent.derive(
            name=name,
            monthly_amount=round_to_cents(monthly_ctc * ratio),
            category=ComponentCategory.EARNING,
            pro_rata=pro_rata,
            removable=removable,
        )
        for name, ratio, pro_rata, removable in DEFAULT_CTC_SPLIT
    ]


def snapshot_from_record(record: SalarySnapshotRecord) -> SalarySnapshot:
    return SalarySnapshot(
        subject_id=record.subject_id,
        version=record.version,
        components=tuple(SalaryComponent.from_dict(c) for c in record.components),
        subject_type=SubjectType(record.subject_type),
        reason=SnapshotReason(record.reason),
        annual_ctc=to_decimal(record.annual_ctc) if record.annual_ctc is not None else None,
        defaults_applied=record.defaults_applied,
        effective_from=record.effective_from,
        snapshot_id=record.snapshot_id,
        created_at=record.created_at,
        created_by=record.created_by,
        notes=record.notes,
    )


class SalarySnapshotStore:
    """Creates and reads salary snapshots inside one tenant store.

    Snapshots are append-only. Each subject has a pointer row holding the
    latest allocated version and the version currently in effect. Version
    allocation is serialized per subject in-process. Across processes the
    unique ``(subject_id, version)`` constraint rejects a duplicate version and
    the allocation is retried against the fresh pointer.
    """

    def __init__(self, handle: TenantHandle):
        self.handle = handle
        self.store = handle.store

    async def create_snapshot(
        self,
        subject_id: str,
        components: Iterable[Mapping[str, Any] | SalaryComponent],
        *,
        subject_type: SubjectType | str = SubjectType.EMPLOYEE,
        reason: SnapshotReason | str = SnapshotReason.MANUAL,
        effective_from: date | None = None,
        annual_ctc: Decimal | int | str | None = None,
        created_by: str | None = None,
        notes: str | None = None,
        defaults_applied: bool = False,
    ) -> SalarySnapshot:
        """Validate components and append a new snapshot version.

        Raises InvalidComponentError listing every violation in the batch.
        """
        parsed = tuple(parse_components(components))
        subject_type = SubjectType(subject_type)
        reason = SnapshotReason(reason)
        ctc = to_decimal(annual_ctc) if annual_ctc is not None else None
        breakdown = SalaryBreakdown.from_components(parsed, ctc)

        with LogContext.bind(tenant_id=self.handle.tenant_id, subject_id=subject_id):
            async with self.handle.locks.hold(("salary_snapshot", subject_id)):
                for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
                    try:
                        record = await self._append(
                            subject_id,
                            parsed,
                            breakdown,
                            subject_type=subject_type,
                            reason=reason,
                            effective_from=effective_from,
                            annual_ctc=ctc,
                            defaults_applied=defaults_applied,
                            created_by=created_by,
                            notes=notes,
                        )
                        break
                    except WriteConflictError:
                        if attempt == MAX_ALLOCATION_ATTEMPTS:
                            raise
                        logger.warning(
                            "Snapshot version taken by another writer, retrying",
                            extra={"attempt": attempt},
                        )

            logger.info(
                "Salary snapshot created",
                extra={
                    "version": record.version,
                    "reason": reason.value,
                    "component_count": len(parsed),
                    "defaults_applied": defaults_applied,
                },
            )
        return snapshot_from_record(record)

    async def create_snapshot_from_ctc(
        self,
        subject_id: str,
        annual_ctc: Decimal | int | str,
        **kwargs: Any,
    ) -> SalarySnapshot:
        """Create a snapshot from the default CTC split; flags ``defaults_applied``."""
        components = default_earnings_from_ctc(annual_ctc)
        return await self.create_snapshot(
            subject_id,
            components,
            annual_ctc=annual_ctc,
            defaults_applied=True,
            **kwargs,
        )

    async def get_current(self, subject_id: str) -> SalarySnapshot | None:
        async with self.store.session("get_current_snapshot") as session:
            pointer = await self._get_pointer(session, subject_id)
            if pointer is None:
                return None
            record = await self._get_record(session, subject_id, pointer.current_version)
        return snapshot_from_record(record) if record else None

    async def get_version(self, subject_id: str, version: int) -> SalarySnapshot | None:
        async with self.store.session("get_snapshot_version") as session:
            record = await self._get_record(session, subject_id, version)
        return snapshot_from_record(record) if record else None

    async def list_versions(self, subject_id: str) -> list[SalarySnapshot]:
        """Full snapshot history of a subject, oldest first."""
        async with self.store.session("list_snapshot_versions") as session:
            result = await session.execute(
                select(SalarySnapshotRecord)
                .where(SalarySnapshotRecord.subject_id == subject_id)
                .order_by(SalarySnapshotRecord.version)
            )
            return [snapshot_from_record(r) for r in result.scalars()]

    async def set_current(self, subject_id: str, version: int) -> SalarySnapshot:
        """Point the subject at an existing version without touching history."""
        async with self.handle.locks.hold(("salary_snapshot", subject_id)):
            async with self.store.session("set_current_snapshot") as session:
                record = await self._get_record(session, subject_id, version)
                if record is None:
                    raise SnapshotNotFoundError(subject_id, version)
                pointer = await self._get_pointer(session, subject_id, for_update=True)
                pointer.current_version = version

        logger.info(
            "Current salary snapshot moved",
            extra={
                "tenant_id": self.handle.tenant_id,
                "subject_id": subject_id,
                "version": version,
            },
        )
        return snapshot_from_record(record)

    async def _append(
        self,
        subject_id: str,
        components: tuple[SalaryComponent, ...],
        breakdown: SalaryBreakdown,
        *,
        subject_type: SubjectType,
        reason: SnapshotReason,
        effective_from: date | None,
        annual_ctc: Decimal | None,
        defaults_applied: bool,
        created_by: str | None,
        notes: str | None,
    ) -> SalarySnapshotRecord:
        """Allocate the next version and write the record in one transaction."""
        async with self.store.session("create_snapshot") as session:
            pointer = await self._get_pointer(session, subject_id, for_update=True)
            previous = pointer.latest_version if pointer else None
            version = (previous or 0) + 1

            record = SalarySnapshotRecord(
                tenant_id=self.handle.tenant_id,
                subject_id=subject_id,
                subject_type=subject_type.value,
                version=version,
                reason=reason.value,
                effective_from=effective_from,
                annual_ctc=annual_ctc,
                defaults_applied=defaults_applied,
                components=[c.to_dict() for c in components],
                breakdown=breakdown.to_dict(),
                previous_version=previous,
                created_by=created_by,
                notes=notes,
            )
            session.add(record)

            if pointer is None:
                session.add(
                    SubjectSalaryPointer(
                        subject_id=subject_id,
                        tenant_id=self.handle.tenant_id,
                        subject_type=subject_type.value,
                        current_version=version,
                        latest_version=version,
                    )
                )
            else:
                pointer.latest_version = version
                pointer.current_version = version
            await session.flush()
        return record

    @staticmethod
    async def _get_pointer(
        session: Any, subject_id: str, for_update: bool = False
    ) -> SubjectSalaryPointer | None:
        stmt = select(SubjectSalaryPointer).where(SubjectSalaryPointer.subject_id == subject_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def _get_record(
        session: Any, subject_id: str, version: int
    ) -> SalarySnapshotRecord | None:
        result = await session.execute(
            select(SalarySnapshotRecord).where(
                SalarySnapshotRecord.subject_id == subject_id,
                SalarySnapshotRecord.version == version,
            )
        )
        return result.scalar_one_or_none()
