"""Tenant directory stored in the control-plane database."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import or_, select

from hrms_core.database import ControlPlane
from hrms_core.exceptions import (
    TenantAlreadyExistsError,
    TenantNotFoundError,
    WriteConflictError,
)
from hrms_core.logging_config import get_logger
from hrms_core.models import Tenant
from hrms_core.models.tenant import TENANT_STATUSES

logger = get_logger(__name__)


@dataclass(frozen=True)
class TenantInfo:
    """Detached view of a tenant row."""

    tenant_id: str
    name: str
    status: str
    database_name: str | None = None
    code: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @classmethod
    def from_model(cls, tenant: Tenant) -> TenantInfo:
        return cls(
            tenant_id=tenant.tenant_id,
            name=tenant.name,
            status=tenant.status,
            database_name=tenant.database_name,
            code=tenant.code,
        )


class TenantDirectory:
    """Registers and looks up tenants by id or code."""

    def __init__(self, control: ControlPlane):
        self.control = control

    async def register(
        self,
        tenant_id: str,
        name: str,
        code: str | None = None,
        status: str = "active",
        database_name: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> TenantInfo:
        """Add a tenant to the directory.

        Raises TenantAlreadyExistsError when the id or code is taken.
        """
        if status not in TENANT_STATUSES:
            raise ValueError(f"Unknown tenant status '{status}'")

        tenant = Tenant(
            tenant_id=tenant_id,
            name=name,
            code=code,
            status=status,
            database_name=database_name,
            meta=meta or {},
        )
        try:
            async with self.control.session("register_tenant", tenant_id=tenant_id) as session:
                session.add(tenant)
        except WriteConflictError as e:
            raise TenantAlreadyExistsError(tenant_id, code) from e
        logger.info("Tenant registered", extra={"tenant_id": tenant_id, "status": status})
        return TenantInfo.from_model(tenant)

    async def find(self, ref: str) -> TenantInfo | None:
        """Look up a tenant by id or code, whatever its status."""
        async with self.control.session("lookup_tenant", tenant_id=ref) as session:
            result = await session.execute(
                select(Tenant).where(or_(Tenant.tenant_id == ref, Tenant.code == ref))
            )
            rows = list(result.scalars())
        if not rows:
            return None
        # an id match wins over a code that happens to equal another tenant's id
        rows.sort(key=lambda t: t.tenant_id != ref)
        return TenantInfo.from_model(rows[0])

    async def lookup(self, ref: str) -> TenantInfo:
        """Look up an active tenant.

        Raises TenantNotFoundError when the tenant is unknown, or when it
        exists but is not active (the error carries the status).
        """
        info = await self.find(ref)
        if info is None:
            raise TenantNotFoundError(ref)
        if not info.is_active:
            raise TenantNotFoundError(info.tenant_id, status=info.status)
        return info

    async def set_status(self, tenant_id: str, status: str) -> TenantInfo:
        if status not in TENANT_STATUSES:
            raise ValueError(f"Unknown tenant status '{status}'")

        async with self.control.session("set_tenant_status", tenant_id=tenant_id) as session:
            tenant = await session.get(Tenant, tenant_id)
            if tenant is None:
                raise TenantNotFoundError(tenant_id)
            previous = tenant.status
            tenant.status = status
        logger.info(
            "Tenant status changed",
            extra={"tenant_id": tenant_id, "from_status": previous, "to_status": status},
        )
        return TenantInfo.from_model(tenant)

    async def list_tenants(self, status: str | None = None) -> list[TenantInfo]:
        """All tenants ordered by id, optionally only those with ``status``."""
        stmt = select(Tenant).order_by(Tenant.tenant_id)
        if status is not None:
            stmt = stmt.where(Tenant.status == status)
        async with self.control.session("list_tenants") as session:
            result = await session.execute(stmt)
            return [TenantInfo.from_model(t) for t in result.scalars()]
