"""Salary document composition."""

from hrms_core.composer.defaults import DEFAULT_SECTIONS, default_config
from hrms_core.composer.engine import DocumentComposer
from hrms_core.composer.types import (
    CalculationType,
    Columns,
    ComponentCategory,
    DataSource,
    DocumentType,
    DocumentViewConfig,
    FilterMode,
    RenderModel,
    RenderRow,
    RenderSection,
    ResolvedConfig,
    SalaryComponent,
    SalarySnapshot,
    Section,
    SnapshotReason,
    SubjectType,
)

__all__ = [
    "DEFAULT_SECTIONS",
    "CalculationType",
    "Columns",
    "ComponentCategory",
    "DataSource",
    "DocumentComposer",
    "DocumentType",
    "DocumentViewConfig",
    "FilterMode",
    "RenderModel",
    "RenderRow",
    "RenderSection",
    "ResolvedConfig",
    "SalaryComponent",
    "SalarySnapshot",
    "Section",
    "SnapshotReason",
    "SubjectType",
    "default_config",
]
