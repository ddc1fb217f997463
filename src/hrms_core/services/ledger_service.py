"""Generated document ledger."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from hrms_core.composer.types import DocumentType, RenderModel, SubjectType
from hrms_core.exceptions import DocumentNotFoundError
from hrms_core.logging_config import LogContext, get_logger
from hrms_core.models import DocumentStatusEvent, GeneratedDocument
from hrms_core.models.base import utcnow
from hrms_core.schemas import coerce_document_type
from hrms_core.services.state_machine import DocumentLifecycle, DocumentStatus
from hrms_core.tenancy import TenantHandle

logger = get_logger(__name__)


class DocumentLedger:
    """Records issued documents and drives their lifecycle.

    A recorded document keeps its own copy of the render model and subject
    details; later snapshot or profile changes never reach it.
    """

    def __init__(self, handle: TenantHandle):
        self.handle = handle
        self.store = handle.store

    async def record(
        self,
        subject_id: str,
        document_type: DocumentType | str,
        render_model: RenderModel,
        template_ref: str,
        pdf_location: str | None = None,
        *,
        subject_type: SubjectType | str = SubjectType.EMPLOYEE,
        subject_data: Mapping[str, Any] | None = None,
        generated_by: str | None = None,
    ) -> GeneratedDocument:
        doc_type = coerce_document_type(document_type)
        document = GeneratedDocument(
            tenant_id=self.handle.tenant_id,
            subject_id=subject_id,
            subject_type=SubjectType(subject_type).value,
            document_type=doc_type.value,
            template_ref=template_ref,
            snapshot_version=render_model.snapshot_version,
            render_model=render_model.to_dict(),
            render_fingerprint=render_model.fingerprint(),
            subject_data=copy.deepcopy(dict(subject_data or {})),
            pdf_location=pdf_location,
            status=DocumentStatus.GENERATED.value,
            generated_by=generated_by,
        )
        async with self.store.session("record_document") as session:
            session.add(document)
            await session.flush()
            session.add(
                DocumentStatusEvent(
                    document_id=document.document_id,
                    sequence=1,
                    from_status=None,
                    to_status=DocumentStatus.GENERATED.value,
                    actor=generated_by,
                )
            )

        with LogContext.bind(tenant_id=self.handle.tenant_id, document_id=document.document_id):
            logger.info(
                "Document recorded",
                extra={
                    "subject_id": subject_id,
                    "document_type": doc_type.value,
                    "snapshot_version": render_model.snapshot_version,
                },
            )
        return document

    async def transition(
        self,
        document_id: UUID,
        new_status: DocumentStatus | str,
        actor: str | None = None,
        reason: str | None = None,
    ) -> GeneratedDocument:
        """Move a document to a new status.

        Raises InvalidTransitionError for any edge outside the lifecycle.
        """
        target = DocumentLifecycle.coerce(new_status)
        target_value = target.value if target else str(new_status)

        async with self.handle.locks.hold(("document", str(document_id))):
            async with self.store.session("transition_document") as session:
                document = await self._get_for_update(session, document_id)
                from_status = document.status
                DocumentLifecycle.validate_transition(from_status, target_value)

                now = utcnow()
                document.status = target_value
                setattr(document, DocumentLifecycle.TIMESTAMP_FIELDS[target], now)

                sequence = await session.scalar(
                    select(func.count())
                    .select_from(DocumentStatusEvent)
                    .where(DocumentStatusEvent.document_id == document.document_id)
                )
                session.add(
                    DocumentStatusEvent(
                        document_id=document.document_id,
                        sequence=(sequence or 0) + 1,
                        from_status=from_status,
                        to_status=target_value,
                        actor=actor,
                        reason=reason,
                        occurred_at=now,
                    )
                )

        with LogContext.bind(tenant_id=self.handle.tenant_id, document_id=document_id):
            logger.info(
                "Document status changed",
                extra={"from_status": from_status, "to_status": target_value, "actor": actor},
            )
        return document

    async def expire(
        self, document_id: UUID, actor: str | None = None, reason: str | None = None
    ) -> GeneratedDocument:
        """Expire a document from any non-terminal status. Scheduling is external."""
        return await self.transition(document_id, DocumentStatus.EXPIRED, actor, reason)

    async def get(self, document_id: UUID) -> GeneratedDocument:
        async with self.store.session("get_document") as session:
            document = await session.get(GeneratedDocument, document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    async def list_for_subject(
        self, subject_id: str, document_type: DocumentType | str | None = None
    ) -> list[GeneratedDocument]:
        stmt = select(GeneratedDocument).where(
            GeneratedDocument.tenant_id == self.handle.tenant_id,
            GeneratedDocument.subject_id == subject_id,
        )
        if document_type is not None:
            stmt = stmt.where(
                GeneratedDocument.document_type == coerce_document_type(document_type).value
            )
        stmt = stmt.order_by(GeneratedDocument.created_at)
        async with self.store.session("list_documents") as session:
            result = await session.execute(stmt)
            return list(result.scalars())

    async def history(self, document_id: UUID) -> list[DocumentStatusEvent]:
        """Status events of a document, oldest first."""
        async with self.store.session("document_history") as session:
            result = await session.execute(
                select(GeneratedDocument)
                .where(GeneratedDocument.document_id == document_id)
                .options(selectinload(GeneratedDocument.events))
            )
            document = result.scalar_one_or_none()
            if document is None:
                raise DocumentNotFoundError(document_id)
            return list(document.events)

    @staticmethod
    async def _get_for_update(session: Any, document_id: UUID) -> GeneratedDocument:
        result = await session.execute(
            select(GeneratedDocument)
            .where(GeneratedDocument.document_id == document_id)
            .with_for_update()
        )
        document = result.scalar_one_or_none()
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document


def stored_render_model(document: GeneratedDocument) -> RenderModel:
    """Rebuild the render model a document was issued with."""
    return RenderModel.from_dict(document.render_model)
