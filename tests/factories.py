"""Test data builders: salary components, snapshots and settings."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from hrms_core.composer.types import ComponentCategory, SalaryComponent, SalarySnapshot
from hrms_core.config import Settings


def component(
    name: str,
    monthly: str | int,
    category: ComponentCategory = ComponentCategory.EARNING,
) -> SalaryComponent:
    return SalaryComponent.derive(name=name, monthly_amount=Decimal(str(monthly)), category=category)


def snapshot(*components: SalaryComponent, subject_id: str = "emp-1", version: int = 1) -> SalarySnapshot:
    return SalarySnapshot(subject_id=subject_id, version=version, components=tuple(components))


def make_settings(tmp_path: Any, **overrides: Any) -> Settings:
    """Settings pointing at SQLite files under tmp_path.

    One control-plane database plus one database per tenant, mirroring the
    separate Postgres databases used in production.
    """
    values: dict[str, Any] = {
        "control_database_url": f"sqlite+aiosqlite:///{tmp_path}/control.db",
        "tenant_database_url_template": f"sqlite+aiosqlite:///{tmp_path}/{{db_name}}.db",
        "tenant_db_prefix": "company_",
        "max_cached_tenants": 50,
        "store_timeout_seconds": 10.0,
        "log_level": "DEBUG",
        "log_json": True,
    }
    values.update(overrides)
    return Settings(**values)
