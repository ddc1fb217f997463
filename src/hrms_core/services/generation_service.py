"""Document generation: tenant -> snapshot -> view config -> render -> ledger."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from hrms_core.composer.engine import DocumentComposer
from hrms_core.composer.types import (
    RenderModel,
    SalaryComponent,
    SalarySnapshot,
    SnapshotReason,
    SubjectType,
)
from hrms_core.exceptions import SnapshotNotFoundError
from hrms_core.logging_config import LogContext, get_logger
from hrms_core.models import GeneratedDocument
from hrms_core.schemas import coerce_document_type
from hrms_core.services.ledger_service import DocumentLedger
from hrms_core.services.snapshot_service import SalarySnapshotStore
from hrms_core.services.view_config_service import ViewConfigService
from hrms_core.tenancy import TenantHandle, TenantRegistry

logger = get_logger(__name__)

# Subject profile fields copied onto every generated document
SUBJECT_FIELDS = (
    "full_name",
    "email",
    "employee_code",
    "designation",
    "department",
    "location",
    "joining_date",
)

_SUBJECT_MODELS = {
    SubjectType.EMPLOYEE: "Employee",
    SubjectType.CANDIDATE: "Candidate",
}


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one generation, with both fallbacks made visible."""

    document: GeneratedDocument
    snapshot: SalarySnapshot
    render_model: RenderModel
    defaults_applied: bool
    default_config_used: bool


class DocumentGenerationService:
    """Runs the full generation flow for one subject and document type.

    Salary source, in order of precedence:
    1) explicit components: stored as a new snapshot
    2) annual CTC: default 50/30/20 split stored as a new snapshot
    3) the subject's current snapshot (SnapshotNotFoundError if none)

    The view config is the tenant's active one, else the built-in default.
    """

    def __init__(self, registry: TenantRegistry):
        self.registry = registry

    async def generate(
        self,
        tenant_id: str,
        subject_id: str,
        document_type: str,
        template_ref: str,
        pdf_location: str | None = None,
        components: Iterable[Mapping[str, Any] | SalaryComponent] | None = None,
        annual_ctc: Decimal | int | str | None = None,
        subject_type: SubjectType | str = SubjectType.EMPLOYEE,
        reason: SnapshotReason | str = SnapshotReason.MANUAL,
        effective_from: date | None = None,
        generated_by: str | None = None,
    ) -> GenerationResult:
        doc_type = coerce_document_type(document_type)
        subject_type = SubjectType(subject_type)
        handle = await self.registry.resolve(tenant_id)

        with LogContext.bind(tenant_id=handle.tenant_id, subject_id=subject_id):
            snapshot = await self._load_snapshot(
                handle,
                subject_id,
                components=components,
                annual_ctc=annual_ctc,
                subject_type=subject_type,
                reason=reason,
                effective_from=effective_from,
                created_by=generated_by,
            )

            resolved = await ViewConfigService(handle).resolve_config(doc_type)
            render_model = DocumentComposer.compose(snapshot, resolved.config)
            subject_data = await self._subject_data(handle, subject_id, subject_type)

            document = await DocumentLedger(handle).record(
                subject_id,
                doc_type,
                render_model,
                template_ref,
                pdf_location,
                subject_type=subject_type,
                subject_data=subject_data,
                generated_by=generated_by,
            )

            logger.info(
                "Document generated",
                extra={
                    "document_id": document.document_id,
                    "document_type": doc_type.value,
                    "snapshot_version": snapshot.version,
                    "defaults_applied": snapshot.defaults_applied,
                    "default_config_used": resolved.is_default,
                },
            )

        return GenerationResult(
            document=document,
            snapshot=snapshot,
            render_model=render_model,
            defaults_applied=snapshot.defaults_applied,
            default_config_used=resolved.is_default,
        )

    @staticmethod
    async def _load_snapshot(
        handle: TenantHandle,
        subject_id: str,
        *,
        components: Iterable[Mapping[str, Any] | SalaryComponent] | None,
        annual_ctc: Decimal | int | str | None,
        **kwargs: Any,
    ) -> SalarySnapshot:
        snapshots = SalarySnapshotStore(handle)
        if components is not None:
            return await snapshots.create_snapshot(
                subject_id, components, annual_ctc=annual_ctc, **kwargs
            )
        if annual_ctc is not None:
            return await snapshots.create_snapshot_from_ctc(subject_id, annual_ctc, **kwargs)

        snapshot = await snapshots.get_current(subject_id)
        if snapshot is None:
            raise SnapshotNotFoundError(subject_id)
        return snapshot

    @staticmethod
    async def _subject_data(
        handle: TenantHandle, subject_id: str, subject_type: SubjectType
    ) -> dict[str, Any]:
        """Profile fields of the subject, or an empty dict when it has no record."""
        model = handle.models.get(_SUBJECT_MODELS[subject_type])
        async with handle.store.session("load_subject") as session:
            subject = await session.get(model, subject_id)
        if subject is None:
            logger.debug("Subject has no profile record")
            return {}

        data: dict[str, Any] = {"subject_id": subject_id, "subject_type": subject_type.value}
        for name in SUBJECT_FIELDS:
            value = getattr(subject, name, None)
            if isinstance(value, date):
                value = value.isoformat()
            data[name] = value
        return data
