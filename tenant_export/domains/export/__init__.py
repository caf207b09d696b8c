"""Export domain for whole-tenant data export."""

from .entities import (
    DataWrapper,
    EntityId,
    ExportConfig,
    ExportResult,
    ExportStatus,
    ObjectType,
)

from .exceptions import (
    ExportAlreadyRunningError,
    ExportFailedError,
    ExportNotReadyError,
    ExportQueueFullError,
    ExportWorkerShutdownError,
    ExportResultNotFoundError,
    TenantExportError,
    TenantNotFoundError,
)

from .services import TenantExportService, storage_cleanup_listener

__all__ = [
    # Entities
    "DataWrapper",
    "EntityId",
    "ExportConfig",
    "ExportResult",
    "ExportStatus",
    "ObjectType",

    # Errors
    "ExportAlreadyRunningError",
    "ExportFailedError",
    "ExportNotReadyError",
    "ExportQueueFullError",
    "ExportWorkerShutdownError",
    "ExportResultNotFoundError",
    "TenantExportError",
    "TenantNotFoundError",

    # Services
    "TenantExportService",
    "storage_cleanup_listener",
]
