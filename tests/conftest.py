"""Pytest fixtures for HRMS core tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

import pytest

from factories import component, make_settings, snapshot
from hrms_core.composer.types import ComponentCategory, SalarySnapshot
from hrms_core.config import Settings
from hrms_core.database import ControlPlane
from hrms_core.logging_config import LogContext, reset_logging
from hrms_core.tenancy import TenantDirectory, TenantHandle, TenantRegistry


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
async def control(settings) -> AsyncGenerator[ControlPlane, None]:
    """Control-plane database with its schema created."""
    control = ControlPlane.from_url(
        settings.control_database_url,
        timeout_seconds=settings.store_timeout_seconds,
    )
    await control.create_schema()
    yield control
    await control.dispose()


@pytest.fixture
async def directory(control) -> TenantDirectory:
    """Directory with two active tenants."""
    directory = TenantDirectory(control)
    await directory.register("acme", "Acme Corp", code="ACME")
    await directory.register("globex", "Globex Inc", code="GLOBEX")
    return directory


@pytest.fixture
async def registry(directory, settings) -> AsyncGenerator[TenantRegistry, None]:
    registry = TenantRegistry(directory, settings)
    yield registry
    await registry.close()


@pytest.fixture
async def handle(registry) -> TenantHandle:
    """Resolved handle of the ``acme`` tenant."""
    return await registry.resolve("acme")


@pytest.fixture
async def other_handle(registry) -> TenantHandle:
    """Resolved handle of the ``globex`` tenant."""
    return await registry.resolve("globex")


@pytest.fixture
def basic_hra_allowance() -> SalarySnapshot:
    """Snapshot containing [Basic, HRA, Allowance] in that order."""
    return snapshot(
        component("Basic", 50000),
        component("HRA", 20000),
        component("Allowance", 10000),
    )


@pytest.fixture
def full_snapshot() -> SalarySnapshot:
    """Snapshot with earnings, employee deductions and employer contributions."""
    return snapshot(
        component("Basic", 50000),
        component("HRA", 20000),
        component("Special Allowance", 8000),
        component("Provident Fund", 1800, ComponentCategory.EMPLOYEE_DEDUCTION),
        component("Professional Tax", 200, ComponentCategory.EMPLOYEE_DEDUCTION),
        component("Employer PF", 1800, ComponentCategory.EMPLOYER_CONTRIBUTION),
        component("Gratuity", "2404.50", ComponentCategory.EMPLOYER_CONTRIBUTION),
    )


@pytest.fixture
def component_payload() -> list[dict[str, Any]]:
    """Component list as an external caller would submit it."""
    return [
        {"name": "Basic", "monthlyAmount": "50000", "proRata": True, "isRemovable": False},
        {"name": "HRA", "monthlyAmount": 20000},
        {"name": "Provident Fund", "monthlyAmount": 1800, "category": "employeeDeduction"},
        {"name": "Employer PF", "monthlyAmount": 1800, "category": "employerContribution"},
    ]
