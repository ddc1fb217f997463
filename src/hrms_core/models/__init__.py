"""ORM models for the control plane and tenant stores."""

from hrms_core.models.base import ControlBase, TenantBase, TimestampMixin
from hrms_core.models.documents import (
    DocumentStatusEvent,
    DocumentViewConfigRecord,
    GeneratedDocument,
)
from hrms_core.models.salary import (
    Candidate,
    ComponentDefinition,
    Employee,
    SalarySnapshotRecord,
    SubjectSalaryPointer,
)
from hrms_core.models.tenant import Tenant

# Entity names registered on every tenant store.
TENANT_MODELS: dict[str, type[TenantBase]] = {
    "Employee": Employee,
    "Candidate": Candidate,
    "SalarySnapshot": SalarySnapshotRecord,
    "SubjectSalaryPointer": SubjectSalaryPointer,
    "ComponentDefinition": ComponentDefinition,
    "DocumentViewConfig": DocumentViewConfigRecord,
    "GeneratedDocument": GeneratedDocument,
    "DocumentStatusEvent": DocumentStatusEvent,
}

__all__ = [
    "TENANT_MODELS",
    "Candidate",
    "ComponentDefinition",
    "ControlBase",
    "DocumentStatusEvent",
    "DocumentViewConfigRecord",
    "Employee",
    "GeneratedDocument",
    "SalarySnapshotRecord",
    "SubjectSalaryPointer",
    "Tenant",
    "TenantBase",
    "TimestampMixin",
]
