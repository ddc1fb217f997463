"""Database engines, store handles and session management.

There is no module-level engine. The control plane and every tenant store
are explicit objects: opened at process start (or on first tenant access),
passed to the services that need them and disposed at shutdown.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hrms_core.exceptions import (
    StoreTimeoutError,
    TenantStoreUnavailableError,
    WriteConflictError,
)
from hrms_core.logging_config import get_logger
from hrms_core.models import ControlBase, TenantBase

logger = get_logger(__name__)

CONTROL_PLANE = "control-plane"


def create_store_engine(url: str, *, timeout_seconds: float) -> AsyncEngine:
    """Create an async engine with driver-level timeouts applied."""
    kwargs: dict[str, Any] = {"echo": False}

    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"timeout": timeout_seconds}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            # one shared connection, otherwise each checkout sees an empty db
            kwargs["poolclass"] = StaticPool
    else:
        kwargs.update(
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            pool_timeout=timeout_seconds,
        )
        if "+asyncpg" in url:
            kwargs["connect_args"] = {
                "timeout": timeout_seconds,
                "command_timeout": timeout_seconds,
            }

    return create_async_engine(url, **kwargs)


@asynccontextmanager
async def translate_store_errors(
    tenant_id: str,
    operation: str,
    timeout_seconds: float,
    *,
    connecting: bool = False,
) -> AsyncGenerator[None, None]:
    """Map driver and pool failures onto the core's error taxonomy.

    Raw ``OSError`` is only treated as an unreachable store while
    ``connecting``; elsewhere it belongs to the caller and propagates as is.
    Unique violations become WriteConflictError.
    """
    try:
        yield
    except (TimeoutError, sa_exc.TimeoutError) as e:
        logger.warning(
            "Store operation timed out",
            extra={"tenant_id": tenant_id, "operation": operation},
        )
        raise StoreTimeoutError(operation, timeout_seconds, tenant_id) from e
    except sa_exc.IntegrityError as e:
        logger.warning(
            "Store write conflict",
            extra={"tenant_id": tenant_id, "operation": operation, "error": str(e.orig)},
        )
        raise WriteConflictError(operation, tenant_id, str(e.orig)) from e
    except (sa_exc.OperationalError, sa_exc.InterfaceError) as e:
        _log_unavailable(tenant_id, operation, e)
        raise TenantStoreUnavailableError(tenant_id, str(e)) from e
    except OSError as e:
        if not connecting:
            raise
        _log_unavailable(tenant_id, operation, e)
        raise TenantStoreUnavailableError(tenant_id, str(e)) from e


def _log_unavailable(tenant_id: str, operation: str, error: BaseException) -> None:
    logger.error(
        "Store unavailable",
        extra={"tenant_id": tenant_id, "operation": operation, "error": str(error)},
    )


class _Store:
    """Engine plus session factory with commit/rollback semantics."""

    def __init__(self, name: str, engine: AsyncEngine, timeout_seconds: float):
        self.name = name
        self.engine = engine
        self.timeout_seconds = timeout_seconds
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def session(
        self, operation: str = "session", *, tenant_id: str | None = None
    ) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session; commits on success, rolls back on error.

        ``tenant_id`` names the tenant in translated errors; it defaults to
        the store's own name.
        """
        ref = tenant_id or self.name
        async with translate_store_errors(ref, operation, self.timeout_seconds):
            async with asyncio.timeout(self.timeout_seconds):
                async with self.session_factory() as session:
                    async with translate_store_errors(
                        ref, operation, self.timeout_seconds, connecting=True
                    ):
                        await session.connection()
                    try:
                        yield session
                        await session.commit()
                    except BaseException:
                        await session.rollback()
                        raise

    async def dispose(self) -> None:
        await self.engine.dispose()


class ControlPlane(_Store):
    """Shared database holding the tenant directory."""

    def __init__(self, engine: AsyncEngine, timeout_seconds: float):
        super().__init__(CONTROL_PLANE, engine, timeout_seconds)

    @classmethod
    def from_url(cls, url: str, *, timeout_seconds: float) -> ControlPlane:
        return cls(create_store_engine(url, timeout_seconds=timeout_seconds), timeout_seconds)

    async def create_schema(self) -> None:
        async with translate_store_errors(
            self.name, "create_schema", self.timeout_seconds, connecting=True
        ):
            async with asyncio.timeout(self.timeout_seconds):
                async with self.engine.begin() as conn:
                    await conn.run_sync(ControlBase.metadata.create_all)


class TenantStore(_Store):
    """Isolated data store of one tenant."""

    def __init__(self, tenant_id: str, engine: AsyncEngine, timeout_seconds: float):
        super().__init__(tenant_id, engine, timeout_seconds)
        self.tenant_id = tenant_id

    async def provision(self) -> None:
        """Create tables and indexes; safe to repeat."""
        async with translate_store_errors(
            self.tenant_id, "provision", self.timeout_seconds, connecting=True
        ):
            async with asyncio.timeout(self.timeout_seconds):
                async with self.engine.begin() as conn:
                    await conn.run_sync(TenantBase.metadata.create_all)
