"""Errors raised by the tenant export domain."""

from typing import Optional
from uuid import UUID


class TenantExportError(Exception):
    """Base class for tenant export errors."""
    pass


class TenantNotFoundError(TenantExportError, ValueError):
    """Raised at submission time when the tenant does not exist."""

    def __init__(self, tenant_id: UUID):
        super().__init__(f"Tenant with id {tenant_id} not found")
        self.tenant_id = tenant_id


class ExportResultNotFoundError(TenantExportError):
    """No export result is registered for the handle (never submitted or evicted)."""

    def __init__(self, tenant_id: UUID):
        super().__init__(f"Export result for tenant id {tenant_id} not found")
        self.tenant_id = tenant_id


class ExportNotReadyError(TenantExportError):
    def __init__(self, tenant_id: UUID):
        super().__init__(f"Export for tenant id {tenant_id} is not ready yet")
        self.tenant_id = tenant_id


class ExportFailedError(TenantExportError):
    """Download requested for a job that failed; carries the stored trace."""

    def __init__(self, tenant_id: UUID, error: Optional[str]):
        super().__init__(f"Tenant export failed: {error}")
        self.tenant_id = tenant_id
        self.error = error


class ExportAlreadyRunningError(TenantExportError):
    def __init__(self, tenant_id: UUID):
        super().__init__(f"Export for tenant id {tenant_id} is already in progress")
        self.tenant_id = tenant_id


class ExportQueueFullError(TenantExportError):
    def __init__(self, max_queued_jobs: int):
        super().__init__(f"Export queue is full ({max_queued_jobs} jobs pending)")
        self.max_queued_jobs = max_queued_jobs


class LatestTelemetryTimeoutError(TenantExportError):
    def __init__(self, entity_id, timeout_seconds: float):
        super().__init__(f"Timed out after {timeout_seconds}s waiting for latest telemetry of {entity_id}")
        self.entity_id = entity_id
        self.timeout_seconds = timeout_seconds


class UnsupportedObjectTypeError(TenantExportError):
    def __init__(self, object_type):
        super().__init__(f"No tenant entity DAO registered for object type {object_type.value}")
        self.object_type = object_type


class ExportStateError(TenantExportError):
    """Illegal export job state transition."""
    pass


class ExportArtifactNotFoundError(TenantExportError):
    def __init__(self, tenant_id: UUID, location: str):
        super().__init__(f"Export archive for tenant id {tenant_id} not found at {location}")
        self.tenant_id = tenant_id
        self.location = location


class ExportWorkerShutdownError(TenantExportError, RuntimeError):
    """Submission after the export worker stopped accepting jobs."""
    pass
