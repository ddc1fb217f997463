"""Tenant registry and connection router.

Resolves a tenant identifier into a ``TenantHandle``: the tenant's own data
store plus the registry of entity models bound to it. Handles are created
lazily, once per tenant, behind a per-tenant initialization lock and kept in
a bounded LRU cache.

Lifecycle: build one ``TenantRegistry`` at process start, pass it to the
services that need it and ``await registry.close()`` at shutdown.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncEngine

from hrms_core.config import Settings
from hrms_core.database import TenantStore, create_store_engine
from hrms_core.exceptions import ModelNotRegisteredError, TenantStoreUnavailableError
from hrms_core.logging_config import LogContext, get_logger
from hrms_core.models import TENANT_MODELS, TenantBase
from hrms_core.tenancy.directory import TenantDirectory, TenantInfo
from hrms_core.tenancy.locks import KeyedLock

logger = get_logger(__name__)

EngineFactory = Callable[..., AsyncEngine]


class ModelRegistry:
    """Entity models available on one tenant's store."""

    def __init__(self, tenant_id: str, models: Mapping[str, type[TenantBase]]):
        self.tenant_id = tenant_id
        self._models = dict(models)

    def get(self, name: str) -> type[TenantBase]:
        try:
            return self._models[name]
        except KeyError:
            raise ModelNotRegisteredError(self.tenant_id, name, self.names()) from None

    def names(self) -> list[str]:
        return sorted(self._models)

    def __contains__(self, name: object) -> bool:
        return name in self._models


@dataclass
class TenantHandle:
    """Everything a service needs to work inside one tenant."""

    tenant: TenantInfo
    store: TenantStore
    models: ModelRegistry
    locks: KeyedLock = field(default_factory=KeyedLock)

    @property
    def tenant_id(self) -> str:
        return self.tenant.tenant_id


class TenantRegistry:
    """Keyed, lazy, memoized factory of tenant handles."""

    def __init__(
        self,
        directory: TenantDirectory,
        settings: Settings,
        models: Mapping[str, type[TenantBase]] | None = None,
        engine_factory: EngineFactory = create_store_engine,
    ):
        self.directory = directory
        self.settings = settings
        self._models = dict(TENANT_MODELS if models is None else models)
        self._engine_factory = engine_factory
        self._handles: OrderedDict[str, TenantHandle] = OrderedDict()
        self._aliases: dict[str, str] = {}
        self._init_locks = KeyedLock()

    async def resolve(self, ref: str) -> TenantHandle:
        """Resolve a tenant id (or code) into its handle.

        The first resolution of a tenant opens and provisions its store;
        later ones are cache hits. Cache hits do not re-read the directory,
        so call ``evict`` after suspending a tenant.

        Raises:
            TenantNotFoundError: unknown or inactive tenant
            TenantStoreUnavailableError: store cannot be reached or provisioned
            StoreTimeoutError: store did not answer in time
        """
        handle = self._cached(self._aliases.get(ref, ref))
        if handle is not None:
            return handle

        info = await self.directory.lookup(ref)
        async with self._init_locks.hold(info.tenant_id):
            handle = self._cached(info.tenant_id)
            if handle is None:
                handle = await self._open(info)
                self._handles[info.tenant_id] = handle
                if info.code:
                    self._aliases[info.code] = info.tenant_id
                await self._evict_overflow()
        return handle

    def _cached(self, tenant_id: str) -> TenantHandle | None:
        handle = self._handles.get(tenant_id)
        if handle is not None:
            self._handles.move_to_end(tenant_id)
        return handle

    async def _open(self, info: TenantInfo) -> TenantHandle:
        db_name = info.database_name or self.settings.tenant_database_name(info.tenant_id)
        url = self.settings.tenant_database_url(db_name)
        timeout = self.settings.store_timeout_seconds

        with LogContext.bind(tenant_id=info.tenant_id):
            try:
                engine = self._engine_factory(url, timeout_seconds=timeout)
            except sa_exc.ArgumentError as e:
                raise TenantStoreUnavailableError(info.tenant_id, str(e)) from e

            store = TenantStore(info.tenant_id, engine, timeout)
            try:
                await store.provision()
            except BaseException:
                await store.dispose()
                raise

            logger.info("Tenant store opened", extra={"database_name": db_name})

        return TenantHandle(
            tenant=info,
            store=store,
            models=ModelRegistry(info.tenant_id, self._models),
        )

    async def _evict_overflow(self) -> None:
        while len(self._handles) > self.settings.max_cached_tenants:
            tenant_id = next(iter(self._handles))
            await self.evict(tenant_id)

    async def evict(self, tenant_id: str) -> bool:
        """Drop one tenant's handle and dispose its engine."""
        handle = self._handles.pop(tenant_id, None)
        if handle is None:
            return False
        self._aliases = {k: v for k, v in self._aliases.items() if v != tenant_id}
        await handle.store.dispose()
        logger.info("Tenant store closed", extra={"tenant_id": tenant_id})
        return True

    async def close(self) -> None:
        """Dispose every cached store."""
        for tenant_id in list(self._handles):
            await self.evict(tenant_id)

    def cached_tenants(self) -> list[str]:
        """Tenant ids in least- to most-recently used order."""
        return list(self._handles)

    def __contains__(self, tenant_id: object) -> bool:
        return tenant_id in self._handles
