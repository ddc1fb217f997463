"""Tenant routing: directory, per-tenant stores and model registries."""

from hrms_core.tenancy.directory import TenantDirectory, TenantInfo
from hrms_core.tenancy.locks import KeyedLock
from hrms_core.tenancy.registry import ModelRegistry, TenantHandle, TenantRegistry

__all__ = [
    "KeyedLock",
    "ModelRegistry",
    "TenantDirectory",
    "TenantHandle",
    "TenantInfo",
    "TenantRegistry",
]
