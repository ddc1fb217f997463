"""Typed exceptions for the HRMS core.

Every error carries a machine-readable ``code`` and the structured fields a
caller needs to build an actionable message (which tenant, which component,
which transition). ``to_dict()`` returns those fields in a JSON-safe form.

    HRMSCoreError
    +-- TenantError
    |   +-- TenantNotFoundError            TENANT_NOT_FOUND
    |   +-- TenantAlreadyExistsError       TENANT_ALREADY_EXISTS
    |   +-- TenantStoreUnavailableError    TENANT_STORE_UNAVAILABLE
    |   +-- ModelNotRegisteredError        MODEL_NOT_REGISTERED
    +-- StoreTimeoutError                  STORE_TIMEOUT (transient)
    +-- WriteConflictError                 WRITE_CONFLICT (transient)
    +-- ValidationError
    |   +-- InvalidComponentError          INVALID_COMPONENT
    |   +-- InvalidViewConfigError         INVALID_VIEW_CONFIG
    |   +-- NoConfigForTypeError           NO_CONFIG_FOR_TYPE
    +-- NotFoundError
    |   +-- SnapshotNotFoundError          SNAPSHOT_NOT_FOUND
    |   +-- DocumentNotFoundError          DOCUMENT_NOT_FOUND
    |   +-- ComponentDefinitionNotFoundError  COMPONENT_DEFINITION_NOT_FOUND
    +-- InvalidTransitionError             INVALID_TRANSITION
    +-- ImmutableRecordError               IMMUTABLE_RECORD

StoreTimeoutError and WriteConflictError are safe to retry. The core retries
internally only where it allocates snapshot versions.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


class HRMSCoreError(Exception):
    """Base class for all HRMS core errors."""

    code: str = "HRMS_CORE_ERROR"
    retryable: bool = False

    def details(self) -> dict[str, Any]:
        """Structured fields describing the failure."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": str(self), **self.details()}


class TenantError(HRMSCoreError):
    """Configuration or isolation failure for a tenant."""

    code = "TENANT_ERROR"


class TenantNotFoundError(TenantError):
    """No usable tenant record exists for the identifier."""

    code = "TENANT_NOT_FOUND"

    def __init__(self, tenant_id: str, status: str | None = None):
        self.tenant_id = tenant_id
        self.status = status
        msg = f"Tenant '{tenant_id}' not found"
        if status:
            msg = f"Tenant '{tenant_id}' is not active (status: {status})"
        super().__init__(msg)

    def details(self) -> dict[str, Any]:
        return {"tenant_id": self.tenant_id, "status": self.status}


class TenantAlreadyExistsError(TenantError):
    """A tenant with the same id or code is already registered."""

    code = "TENANT_ALREADY_EXISTS"

    def __init__(self, tenant_id: str, tenant_code: str | None = None):
        self.tenant_id = tenant_id
        self.tenant_code = tenant_code
        msg = f"Tenant '{tenant_id}' already exists"
        if tenant_code:
            msg = f"Tenant '{tenant_id}' (code '{tenant_code}') conflicts with a registered tenant"
        super().__init__(msg)

    def details(self) -> dict[str, Any]:
        return {"tenant_id": self.tenant_id, "tenant_code": self.tenant_code}


class TenantStoreUnavailableError(TenantError):
    """The tenant's data store could not be reached or provisioned."""

    code = "TENANT_STORE_UNAVAILABLE"

    def __init__(self, tenant_id: str, reason: str):
        self.tenant_id = tenant_id
        self.reason = reason
        super().__init__(f"Store for tenant '{tenant_id}' is unavailable: {reason}")

    def details(self) -> dict[str, Any]:
        return {"tenant_id": self.tenant_id, "reason": self.reason}


class ModelNotRegisteredError(TenantError):
    """An entity type was requested that the tenant registry does not know."""

    code = "MODEL_NOT_REGISTERED"

    def __init__(self, tenant_id: str, model_name: str, registered: list[str]):
        self.tenant_id = tenant_id
        self.model_name = model_name
        self.registered = registered
        super().__init__(
            f"Model '{model_name}' is not registered for tenant '{tenant_id}'"
        )

    def details(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "model_name": self.model_name,
            "registered": self.registered,
        }


class StoreTimeoutError(HRMSCoreError):
    """A store operation exceeded the configured timeout."""

    code = "STORE_TIMEOUT"
    retryable = True

    def __init__(self, operation: str, timeout_seconds: float, tenant_id: str | None = None):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        self.tenant_id = tenant_id
        super().__init__(f"Store operation '{operation}' timed out after {timeout_seconds}s")

    def details(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "timeout_seconds": self.timeout_seconds,
            "tenant_id": self.tenant_id,
        }


class WriteConflictError(HRMSCoreError):
    """A write collided with a concurrent writer on a unique key."""

    code = "WRITE_CONFLICT"
    retryable = True

    def __init__(self, operation: str, tenant_id: str | None = None, reason: str = ""):
        self.operation = operation
        self.tenant_id = tenant_id
        self.reason = reason
        super().__init__(f"Store operation '{operation}' conflicted with a concurrent write")

    def details(self) -> dict[str, Any]:
        return {"operation": self.operation, "tenant_id": self.tenant_id, "reason": self.reason}


class ValidationError(HRMSCoreError):
    """Caller input is invalid and must be corrected."""

    code = "VALIDATION_ERROR"


@dataclass(frozen=True)
class ComponentViolation:
    """One problem found in one submitted salary component."""

    index: int | None
    field: str
    message: str
    name: str | None = None


class InvalidComponentError(ValidationError):
    """One or more salary components failed validation."""

    code = "INVALID_COMPONENT"

    def __init__(self, violations: list[ComponentViolation]):
        self.violations = violations
        summary = "; ".join(
            f"[{v.index}] {v.field}: {v.message}" if v.index is not None
            else f"{v.field}: {v.message}"
            for v in violations
        )
        super().__init__(f"{len(violations)} invalid component field(s): {summary}")

    def details(self) -> dict[str, Any]:
        return {"violations": [asdict(v) for v in self.violations]}


class InvalidViewConfigError(ValidationError):
    """A document view configuration payload is malformed."""

    code = "INVALID_VIEW_CONFIG"

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Invalid view configuration: " + "; ".join(problems))

    def details(self) -> dict[str, Any]:
        return {"problems": self.problems}


class NoConfigForTypeError(ValidationError):
    """No active view configuration exists for the document type."""

    code = "NO_CONFIG_FOR_TYPE"

    def __init__(self, tenant_id: str, document_type: str):
        self.tenant_id = tenant_id
        self.document_type = document_type
        super().__init__(
            f"No active view configuration for '{document_type}' in tenant '{tenant_id}'"
        )

    def details(self) -> dict[str, Any]:
        return {"tenant_id": self.tenant_id, "document_type": self.document_type}


class NotFoundError(HRMSCoreError):
    """A referenced record does not exist."""

    code = "NOT_FOUND"


class SnapshotNotFoundError(NotFoundError):
    code = "SNAPSHOT_NOT_FOUND"

    def __init__(self, subject_id: str, version: int | None = None):
        self.subject_id = subject_id
        self.version = version
        if version is None:
            msg = f"Subject '{subject_id}' has no salary snapshot"
        else:
            msg = f"Subject '{subject_id}' has no salary snapshot version {version}"
        super().__init__(msg)

    def details(self) -> dict[str, Any]:
        return {"subject_id": self.subject_id, "version": self.version}


class DocumentNotFoundError(NotFoundError):
    code = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: Any):
        self.document_id = str(document_id)
        super().__init__(f"Generated document '{document_id}' not found")

    def details(self) -> dict[str, Any]:
        return {"document_id": self.document_id}


class InvalidTransitionError(HRMSCoreError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)

    def details(self) -> dict[str, Any]:
        return {
            "from_status": self.from_status,
            "to_status": self.to_status,
            "reason": self.reason,
        }


class ImmutableRecordError(HRMSCoreError):
    """An attempt was made to modify or delete an immutable record."""

    code = "IMMUTABLE_RECORD"

    def __init__(self, entity: str, identity: str, operation: str):
        self.entity = entity
        self.identity = identity
        self.operation = operation
        super().__init__(f"Cannot {operation} immutable {entity} {identity}")

    def details(self) -> dict[str, Any]:
        return {"entity": self.entity, "identity": self.identity, "operation": self.operation}


class ComponentDefinitionNotFoundError(NotFoundError):
    code = "COMPONENT_DEFINITION_NOT_FOUND"

    def __init__(self, tenant_id: str, code: str):
        self.tenant_id = tenant_id
        self.definition_code = code
        super().__init__(f"Component definition '{code}' not found in tenant '{tenant_id}'")

    def details(self) -> dict[str, Any]:
        return {"tenant_id": self.tenant_id, "definition_code": self.definition_code}
