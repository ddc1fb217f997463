"""Tenant-scoped services."""

from hrms_core.services.catalog_service import ComponentCatalog
from hrms_core.services.generation_service import DocumentGenerationService, GenerationResult
from hrms_core.services.ledger_service import DocumentLedger
from hrms_core.services.snapshot_service import SalarySnapshotStore, default_earnings_from_ctc
from hrms_core.services.state_machine import DocumentLifecycle, DocumentStatus
from hrms_core.services.view_config_service import ViewConfigService

__all__ = [
    "ComponentCatalog",
    "DocumentGenerationService",
    "DocumentLedger",
    "DocumentLifecycle",
    "DocumentStatus",
    "GenerationResult",
    "SalarySnapshotStore",
    "ViewConfigService",
    "default_earnings_from_ctc",
]
