"""Tests for tenant resolution, caching and store routing."""

import asyncio
from dataclasses import replace

import pytest
from sqlalchemy import select, text

from factories import make_settings
from hrms_core.database import (
    ControlPlane,
    TenantStore,
    create_store_engine,
    translate_store_errors,
)
from hrms_core.exceptions import (
    ModelNotRegisteredError,
    StoreTimeoutError,
    TenantAlreadyExistsError,
    TenantNotFoundError,
    TenantStoreUnavailableError,
    WriteConflictError,
)
from hrms_core.models import Employee
from hrms_core.tenancy import KeyedLock, TenantDirectory, TenantRegistry

pytestmark = pytest.mark.asyncio


def counting_factory(created: list[str]):
    def factory(url, **kwargs):
        created.append(url)
        return create_store_engine(url, **kwargs)

    return factory


class TestResolve:
    """Test resolving tenants into handles."""

    async def test_resolve_returns_store_and_models(self, registry):
        handle = await registry.resolve("acme")

        assert handle.tenant_id == "acme"
        assert handle.tenant.name == "Acme Corp"
        assert handle.models.get("Employee") is Employee
        assert "GeneratedDocument" in handle.models

    async def test_resolve_by_code(self, registry):
        by_id = await registry.resolve("acme")
        by_code = await registry.resolve("ACME")

        assert by_code is by_id

    async def test_unknown_tenant(self, registry):
        with pytest.raises(TenantNotFoundError) as exc_info:
            await registry.resolve("initech")

        assert exc_info.value.tenant_id == "initech"
        assert exc_info.value.status is None
        assert exc_info.value.to_dict()["code"] == "TENANT_NOT_FOUND"

    async def test_inactive_tenant(self, registry, directory):
        await directory.register("initech", "Initech", status="suspended")

        with pytest.raises(TenantNotFoundError) as exc_info:
            await registry.resolve("initech")

        assert exc_info.value.status == "suspended"
        assert "initech" not in registry

    async def test_unregistered_model(self, handle):
        with pytest.raises(ModelNotRegisteredError) as exc_info:
            handle.models.get("PayrollRun")

        assert exc_info.value.tenant_id == "acme"
        assert exc_info.value.model_name == "PayrollRun"
        assert "Employee" in exc_info.value.registered

    async def test_unreachable_store(self, directory, tmp_path):
        settings = make_settings(
            tmp_path,
            tenant_database_url_template=f"sqlite+aiosqlite:///{tmp_path}/missing/dir/{{db_name}}.db",
        )
        registry = TenantRegistry(directory, settings)

        with pytest.raises(TenantStoreUnavailableError) as exc_info:
            await registry.resolve("acme")

        assert exc_info.value.tenant_id == "acme"
        assert registry.cached_tenants() == []

    async def test_custom_database_name(self, directory, settings, tmp_path):
        await directory.register("hooli", "Hooli", database_name="hooli_main")
        registry = TenantRegistry(directory, settings)
        try:
            await registry.resolve("hooli")
        finally:
            await registry.close()

        assert (tmp_path / "hooli_main.db").exists()


class TestDirectory:
    """Test the control-plane tenant directory."""

    async def test_duplicate_id_rejected(self, directory):
        with pytest.raises(TenantAlreadyExistsError) as exc_info:
            await directory.register("acme", "Acme Again")

        assert exc_info.value.tenant_id == "acme"
        assert exc_info.value.to_dict()["code"] == "TENANT_ALREADY_EXISTS"

    async def test_duplicate_code_rejected(self, directory):
        with pytest.raises(TenantAlreadyExistsError) as exc_info:
            await directory.register("acme-2", "Acme Two", code="ACME")

        assert exc_info.value.tenant_code == "ACME"
        assert await directory.find("acme-2") is None

    async def test_list_by_status(self, directory):
        await directory.register("initech", "Initech", status="suspended")

        assert [t.tenant_id for t in await directory.list_tenants()] == ["acme", "globex", "initech"]
        assert [t.tenant_id for t in await directory.list_tenants("suspended")] == ["initech"]


class TestIsolation:
    """Test that tenants never see each other's data."""

    async def test_each_tenant_has_its_own_database(self, handle, other_handle, tmp_path):
        async with handle.store.session() as session:
            session.add(Employee(employee_id="e-1", tenant_id="acme", full_name="Asha Rao"))

        async with other_handle.store.session() as session:
            result = await session.execute(select(Employee))
            assert result.scalars().all() == []

        assert (tmp_path / "company_acme.db").exists()
        assert (tmp_path / "company_globex.db").exists()


class TestCaching:
    """Test handle caching and serialized first resolution."""

    async def test_concurrent_first_resolution_creates_one_engine(self, directory, settings):
        created: list[str] = []
        registry = TenantRegistry(directory, settings, engine_factory=counting_factory(created))
        try:
            handles = await asyncio.gather(*(registry.resolve("acme") for _ in range(10)))
        finally:
            await registry.close()

        assert len(created) == 1
        assert all(h is handles[0] for h in handles)

    async def test_later_resolutions_are_cache_hits(self, directory, settings):
        created: list[str] = []
        registry = TenantRegistry(directory, settings, engine_factory=counting_factory(created))
        try:
            first = await registry.resolve("acme")
            second = await registry.resolve("acme")
        finally:
            await registry.close()

        assert first is second
        assert len(created) == 1

    async def test_lru_eviction(self, directory, settings):
        registry = TenantRegistry(directory, replace(settings, max_cached_tenants=1))
        try:
            await registry.resolve("acme")
            await registry.resolve("globex")

            assert registry.cached_tenants() == ["globex"]
            assert "acme" not in registry
        finally:
            await registry.close()

    async def test_recently_used_survives_eviction(self, directory, settings):
        await directory.register("hooli", "Hooli")
        registry = TenantRegistry(directory, replace(settings, max_cached_tenants=2))
        try:
            await registry.resolve("acme")
            await registry.resolve("globex")
            await registry.resolve("acme")
            await registry.resolve("hooli")

            assert registry.cached_tenants() == ["acme", "hooli"]
        finally:
            await registry.close()

    async def test_evict_then_resolve_reopens(self, directory, settings):
        created: list[str] = []
        registry = TenantRegistry(directory, settings, engine_factory=counting_factory(created))
        try:
            await registry.resolve("ACME")
            assert await registry.evict("acme") is True
            assert await registry.evict("acme") is False
            await registry.resolve("ACME")
        finally:
            await registry.close()

        assert len(created) == 2

    async def test_suspension_applies_after_evict(self, registry, directory):
        await registry.resolve("acme")
        await directory.set_status("acme", "suspended")
        await registry.evict("acme")

        with pytest.raises(TenantNotFoundError):
            await registry.resolve("acme")

    async def test_close_disposes_everything(self, registry):
        await registry.resolve("acme")
        await registry.resolve("globex")

        await registry.close()

        assert registry.cached_tenants() == []


class TestStoreErrors:
    """Test translation of driver failures."""

    async def test_timeout_is_translated(self):
        with pytest.raises(StoreTimeoutError) as exc_info:
            async with translate_store_errors("acme", "lookup", 0.5):
                raise TimeoutError()

        assert exc_info.value.retryable is True
        assert exc_info.value.tenant_id == "acme"

    async def test_slow_session_times_out(self, tmp_path):
        url = f"sqlite+aiosqlite:///{tmp_path}/slow.db"
        store = TenantStore("acme", create_store_engine(url, timeout_seconds=0.05), 0.05)
        try:
            with pytest.raises(StoreTimeoutError) as exc_info:
                async with store.session("slow_query") as session:
                    await session.execute(text("SELECT 1"))
                    await asyncio.sleep(1)
        finally:
            await store.dispose()

        assert exc_info.value.operation == "slow_query"

    async def test_os_error_while_connecting_is_unavailable(self):
        with pytest.raises(TenantStoreUnavailableError):
            async with translate_store_errors("acme", "connect", 1, connecting=True):
                raise ConnectionRefusedError("connection refused")

    async def test_caller_os_error_propagates(self, handle):
        with pytest.raises(FileNotFoundError):
            async with handle.store.session("render") as session:
                await session.execute(text("SELECT 1"))
                raise FileNotFoundError("templates/payslip.docx")

    async def test_unique_violation_is_write_conflict(self, handle):
        async with handle.store.session("add_employee") as session:
            session.add(Employee(employee_id="e-1", tenant_id="acme", full_name="Asha Rao"))

        with pytest.raises(WriteConflictError) as exc_info:
            async with handle.store.session("add_employee") as session:
                session.add(Employee(employee_id="e-1", tenant_id="acme", full_name="Asha R."))

        assert exc_info.value.tenant_id == "acme"
        assert exc_info.value.retryable is True

    async def test_control_plane_failure_names_requested_tenant(self, tmp_path):
        control = ControlPlane.from_url(
            f"sqlite+aiosqlite:///{tmp_path}/missing/dir/control.db", timeout_seconds=1
        )
        try:
            with pytest.raises(TenantStoreUnavailableError) as exc_info:
                await TenantDirectory(control).find("initech")
        finally:
            await control.dispose()

        assert exc_info.value.tenant_id == "initech"


class TestKeyedLock:
    """Test per-key serialization."""

    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order: list[str] = []

        async def worker(name: str):
            async with locks.hold("k"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )
        assert len(locks) == 0

    async def test_different_keys_run_in_parallel(self):
        locks = KeyedLock()
        inside = asyncio.Event()

        async def first():
            async with locks.hold("a"):
                await asyncio.wait_for(inside.wait(), timeout=1)

        async def second():
            async with locks.hold("b"):
                inside.set()

        await asyncio.gather(first(), second())
