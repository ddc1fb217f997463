"""Per tenant, per document type view configuration."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import select, update

from hrms_core.composer.defaults import DEFAULT_SECTIONS, default_config
from hrms_core.composer.types import (
    DocumentType,
    DocumentViewConfig,
    ResolvedConfig,
    Section,
)
from hrms_core.exceptions import NoConfigForTypeError
from hrms_core.logging_config import get_logger
from hrms_core.models import DocumentViewConfigRecord
from hrms_core.schemas import coerce_document_type, parse_sections
from hrms_core.tenancy import TenantHandle

logger = get_logger(__name__)


def config_from_record(record: DocumentViewConfigRecord) -> DocumentViewConfig:
    return DocumentViewConfig(
        tenant_id=record.tenant_id,
        document_type=DocumentType(record.document_type),
        sections=tuple(Section.from_dict(s) for s in record.sections),
        is_active=record.is_active,
        config_id=record.config_id,
        updated_at=record.updated_at,
    )


class ViewConfigService:
    """Reads and activates document view configurations for one tenant.

    At most one configuration per (tenant, document type) is active.
    Activation is serialized per pair in-process; the partial unique index
    on active rows rejects a concurrent writer in another process.
    """

    def __init__(self, handle: TenantHandle):
        self.handle = handle
        self.store = handle.store

    async def get_active_config(self, document_type: DocumentType | str) -> DocumentViewConfig:
        """Active config for the type; NoConfigForTypeError when there is none."""
        doc_type = coerce_document_type(document_type)
        async with self.store.session("get_active_view_config") as session:
            record = await self._get_active(session, doc_type)
        if record is None:
            raise NoConfigForTypeError(self.handle.tenant_id, doc_type.value)
        return config_from_record(record)

    async def resolve_config(self, document_type: DocumentType | str) -> ResolvedConfig:
        """Active config, or the built-in default flagged with ``is_default``."""
        doc_type = coerce_document_type(document_type)
        try:
            return ResolvedConfig(await self.get_active_config(doc_type), is_default=False)
        except NoConfigForTypeError:
            logger.info(
                "Using built-in view config",
                extra={"tenant_id": self.handle.tenant_id, "document_type": doc_type.value},
            )
            return ResolvedConfig(default_config(self.handle.tenant_id, doc_type), is_default=True)

    async def upsert_config(
        self,
        document_type: DocumentType | str,
        sections: Iterable[Mapping[str, Any] | Section],
    ) -> DocumentViewConfig:
        """Install a new active config, deactivating the previous one.

        Both writes happen in one transaction. Raises InvalidViewConfigError
        listing every problem in the submitted sections.
        """
        doc_type = coerce_document_type(document_type)
        parsed = parse_sections(sections)

        async with self.handle.locks.hold(("view_config", doc_type.value)):
            async with self.store.session("upsert_view_config") as session:
                result = await session.execute(
                    update(DocumentViewConfigRecord)
                    .where(
                        DocumentViewConfigRecord.tenant_id == self.handle.tenant_id,
                        DocumentViewConfigRecord.document_type == doc_type.value,
                        DocumentViewConfigRecord.is_active.is_(True),
                    )
                    .values(is_active=False)
                )
                record = DocumentViewConfigRecord(
                    tenant_id=self.handle.tenant_id,
                    document_type=doc_type.value,
                    sections=[s.to_dict() for s in parsed],
                    is_active=True,
                )
                session.add(record)
                await session.flush()

        logger.info(
            "View config activated",
            extra={
                "tenant_id": self.handle.tenant_id,
                "document_type": doc_type.value,
                "section_count": len(parsed),
                "deactivated": result.rowcount or 0,
            },
        )
        return config_from_record(record)

    async def deactivate(self, document_type: DocumentType | str) -> bool:
        """Deactivate the active config; later reads fall back to the default."""
        doc_type = coerce_document_type(document_type)
        async with self.handle.locks.hold(("view_config", doc_type.value)):
            async with self.store.session("deactivate_view_config") as session:
                result = await session.execute(
                    update(DocumentViewConfigRecord)
                    .where(
                        DocumentViewConfigRecord.tenant_id == self.handle.tenant_id,
                        DocumentViewConfigRecord.document_type == doc_type.value,
                        DocumentViewConfigRecord.is_active.is_(True),
                    )
                    .values(is_active=False)
                )
        return bool(result.rowcount)

    async def list_configs(
        self, document_type: DocumentType | str | None = None
    ) -> list[DocumentViewConfig]:
        """All configs, active and historical, newest first."""
        stmt = select(DocumentViewConfigRecord).where(
            DocumentViewConfigRecord.tenant_id == self.handle.tenant_id
        )
        if document_type is not None:
            stmt = stmt.where(
                DocumentViewConfigRecord.document_type == coerce_document_type(document_type).value
            )
        stmt = stmt.order_by(
            DocumentViewConfigRecord.document_type,
            DocumentViewConfigRecord.created_at.desc(),
        )
        async with self.store.session("list_view_configs") as session:
            result = await session.execute(stmt)
            return [config_from_record(r) for r in result.scalars()]

    async def seed_defaults(self) -> list[DocumentType]:
        """Install built-in configs for types that have no active config.

        Returns the document types that were seeded.
        """
        seeded: list[DocumentType] = []
        for doc_type, sections in DEFAULT_SECTIONS.items():
            async with self.store.session("seed_view_config") as session:
                existing = await self._get_active(session, doc_type)
            if existing is not None:
                continue
            await self.upsert_config(doc_type, sections)
            seeded.append(doc_type)

        logger.info(
            "Default view configs seeded",
            extra={"tenant_id": self.handle.tenant_id, "seeded": [t.value for t in seeded]},
        )
        return seeded

    async def _get_active(
        self, session: Any, doc_type: DocumentType
    ) -> DocumentViewConfigRecord | None:
        result = await session.execute(
            select(DocumentViewConfigRecord).where(
                DocumentViewConfigRecord.tenant_id == self.handle.tenant_id,
                DocumentViewConfigRecord.document_type == doc_type.value,
                DocumentViewConfigRecord.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()
