"""Export domain services: the tenant export job orchestrator."""

from __future__ import annotations

import logging
import threading
import traceback
from typing import TYPE_CHECKING, BinaryIO, Callable, Optional
from uuid import UUID

from .context import ExportJobContext
from .entities import ExportConfig, ExportResult, Tenant
from .exceptions import (
    ExportAlreadyRunningError,
    ExportNotReadyError,
    ExportFailedError,
    ExportQueueFullError,
    ExportWorkerShutdownError,
    TenantNotFoundError,
)
from .partitions import PartitionPlanner
from .sub_exporters import (
    AttributesExporter,
    AuditLogExporter,
    EventsExporter,
    LatestTelemetryExporter,
    RelationsExporter,
)
from .traversal import EntityTraversalEngine

if TYPE_CHECKING:
    from tenant_export.infrastructure.dao.interfaces import ExportDataSource
    from tenant_export.infrastructure.storage.base import ExportStorage
    from tenant_export.services.export_worker import ExportWorker
    from tenant_export.services.result_registry import ExportResultRegistry, RemovalCause

logger = logging.getLogger(__name__)


def storage_cleanup_listener(storage: ExportStorage) -> Callable[[UUID, ExportResult, RemovalCause], None]:
    """Registry removal listener that reclaims artifacts which were not downloaded."""

    def on_removed(tenant_id: UUID, result: ExportResult, cause: RemovalCause) -> None:
        logger.info(f"[{tenant_id}] Cleaning up export data ({cause.value})")
        storage.clean_up_export_data(tenant_id)

    return on_removed


class TenantExportService:
    """
    Runs whole-tenant exports as background jobs.

    ``export_tenant`` validates the tenant, registers a fresh result under the
    tenant id and queues the job on the worker; it never waits for the job.
    The job handle is the tenant id. Results are read back through the
    registry, whose removal listener deletes the job's artifacts.
    """

    def __init__(
        self,
        data_source: ExportDataSource,
        storage: ExportStorage,
        worker: ExportWorker,
        registry: ExportResultRegistry[UUID, ExportResult],
        entity_page_size: int = 100,
        event_page_size: int = 512,
        latest_telemetry_timeout_seconds: float = 60.0,
        allow_resubmit_while_running: bool = False,
        planner: Optional[PartitionPlanner] = None,
    ):
        self.data_source = data_source
        self.storage = storage
        self.worker = worker
        self.registry = registry
        self.allow_resubmit_while_running = allow_resubmit_while_running
        self._submit_lock = threading.Lock()

        self.planner = planner or PartitionPlanner(data_source.partitioning_repository)
        self.traversal = EntityTraversalEngine(
            data_source.entity_dao_registry,
            sub_exporters=[
                RelationsExporter(data_source.relation_dao),
                EventsExporter(data_source.event_dao, self.planner, page_size=event_page_size),
                AttributesExporter(data_source.attributes_dao),
                LatestTelemetryExporter(
                    data_source.timeseries_latest_dao,
                    timeout_seconds=latest_telemetry_timeout_seconds,
                ),
            ],
            page_size=entity_page_size,
        )
        self.audit_log_exporter = AuditLogExporter(data_source.audit_log_dao, self.planner, page_size=event_page_size)

    def export_tenant(self, config: ExportConfig) -> UUID:
        """Queue an export of the whole tenant and return the job handle."""
        tenant_id = config.tenant_id
        logger.info(f"[{tenant_id}] Exporting tenant")
        tenant = self.data_source.tenant_dao.find_by_id(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)

        with self._submit_lock:
            previous = self.registry.peek(tenant_id)
            if previous is not None and not previous.done and not self.allow_resubmit_while_running:
                raise ExportAlreadyRunningError(tenant_id)
            if self.worker.is_full():
                raise ExportQueueFullError(self.worker.max_queued_jobs)

            result = ExportResult(tenant_id, config)
            replaced = self.registry.put(tenant_id, result)
            if replaced is not None:
                if replaced.done:
                    self.storage.clean_up_export_data(tenant_id)
                else:
                    logger.warning(f"[{tenant_id}] Replacing running export; its result is no longer reachable")

            try:
                self.worker.submit(self._run_export, tenant, config, result)
            except (ExportQueueFullError, ExportWorkerShutdownError):
                self.registry.discard(tenant_id, result)
                raise

        logger.info(f"[{tenant_id}] Export queued (queue depth: {self.worker.queue_depth})")
        return tenant_id

    def _run_export(self, tenant: Tenant, config: ExportConfig, result: ExportResult) -> None:
        result.mark_running()
        logger.info(f"[{tenant.id}] Tenant export started")
        try:
            self._export_tenant(tenant, config, result)
        except Exception:
            logger.error(f"Failed to export tenant {tenant.id}", exc_info=True)
            result.mark_failed(traceback.format_exc())
        else:
            result.mark_succeeded()
            logger.info(f"[{tenant.id}] Tenant export finished: {self._format_stats(result)}")
        finally:
            self.registry.touch(tenant.id, result)

    def _export_tenant(self, tenant: Tenant, config: ExportConfig, result: ExportResult) -> None:
        tenant_id = tenant.id
        context = ExportJobContext(tenant_id, self.storage, result)

        self.storage.init(tenant_id)
        try:
            self.traversal.traverse(context, tenant, config.skipped)
            if self.audit_log_exporter.object_type not in config.skipped:
                self.audit_log_exporter.export(context)
        finally:
            # Partial output stays on disk for inspection when the job fails.
            self.storage.close_export_data(tenant_id)

        self.storage.archive_export_data(tenant_id)

    def get_result(self, tenant_id: UUID) -> ExportResult:
        return self.registry.get(tenant_id)

    def download_result(self, tenant_id: UUID) -> BinaryIO:
        result = self.get_result(tenant_id)
        if not result.done:
            raise ExportNotReadyError(tenant_id)
        if not result.success:
            raise ExportFailedError(tenant_id, result.error)
        return self.storage.download_export_data(tenant_id)

    def delete_result(self, tenant_id: UUID) -> None:
        """Drop the result and its artifacts; refused while the job is still running."""
        result = self.get_result(tenant_id)
        if not result.done:
            raise ExportAlreadyRunningError(tenant_id)
        self.registry.remove(tenant_id)

    @property
    def queue_depth(self) -> int:
        return self.worker.queue_depth

    def shutdown(self, wait: bool = False) -> None:
        self.worker.shutdown(wait=wait)
        self.registry.close()

    @staticmethod
    def _format_stats(result: ExportResult) -> str:
        stats = result.stats
        if not stats:
            return "nothing exported"
        return ", ".join(f"{object_type.value}={count}" for object_type, count in stats.items())
