from contextlib import asynccontextmanager
from typing import Callable, Optional
import asyncio
import logging

from fastapi import FastAPI

from tenant_export import __version__
from tenant_export.core.config import Settings, settings as default_settings
from tenant_export.api import health as health_router
from tenant_export.api.v1.endpoints import export as export_endpoints
from tenant_export.domains.export.services import TenantExportService, storage_cleanup_listener
from tenant_export.infrastructure.dao.interfaces import ExportDataSource
from tenant_export.infrastructure.dao.memory import build_in_memory_data_source
from tenant_export.infrastructure.storage import (
    ExportStorage,
    LocalExportStorage,
    S3Configuration,
    S3ExportStorage,
)
from tenant_export.services.export_worker import ExportWorker
from tenant_export.services.result_registry import ExportResultRegistry

logging.basicConfig(level=default_settings.LOG_LEVEL.upper(), format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def build_storage(settings: Settings) -> ExportStorage:
    """Storage adapter selected by EXPORT_STORAGE_BACKEND."""
    local = LocalExportStorage(settings.resolved_export_base_path, archive_filename=settings.EXPORT_ARCHIVE_FILENAME)
    backend = settings.EXPORT_STORAGE_BACKEND.lower()
    if backend == "local":
        logger.info(f"Using local export storage at {settings.resolved_export_base_path}")
        return local
    if backend == "s3":
        config = S3Configuration(
            endpoint_url=settings.S3_ENDPOINT_URL,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            bucket_name=settings.S3_BUCKET_NAME,
            region_name=settings.S3_REGION_NAME,
            prefix=settings.EXPORT_S3_PREFIX,
        )
        logger.info(f"Using S3 export storage in bucket {config.bucket_name}")
        return S3ExportStorage(config, staging=local)
    raise ValueError(f"Unsupported export storage backend: {settings.EXPORT_STORAGE_BACKEND}")


def build_export_service(
    settings: Settings,
    data_source: ExportDataSource,
    storage: ExportStorage,
    clock: Optional[Callable[[], float]] = None,
) -> TenantExportService:
    registry = ExportResultRegistry(
        ttl_seconds=settings.export_ttl_seconds,
        removal_listener=storage_cleanup_listener(storage),
        is_evictable=lambda result: result.done,
        clock=clock,
    )
    worker = ExportWorker(max_queued_jobs=settings.EXPORT_MAX_QUEUED_JOBS)
    return TenantExportService(
        data_source,
        storage,
        worker,
        registry,
        entity_page_size=settings.EXPORT_ENTITY_PAGE_SIZE,
        event_page_size=settings.EXPORT_EVENT_PAGE_SIZE,
        latest_telemetry_timeout_seconds=settings.EXPORT_LATEST_TELEMETRY_TIMEOUT_SECONDS,
        allow_resubmit_while_running=settings.EXPORT_ALLOW_RESUBMIT_WHILE_RUNNING,
    )


async def run_registry_sweeper(export_service: TenantExportService, interval_seconds: float) -> None:
    """Periodically evict expired results so unread exports are cleaned up too."""
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            purged = export_service.registry.purge_expired()
            if purged:
                logger.info(f"Registry sweep evicted {purged} expired export(s)")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Registry sweep error: {e}")


def create_app(
    data_source: Optional[ExportDataSource] = None,
    storage: Optional[ExportStorage] = None,
    settings: Settings = default_settings,
    clock: Optional[Callable[[], float]] = None,
) -> FastAPI:
    if data_source is None:
        logger.warning("No data source configured; exporting from an empty in-memory store")
        data_source = build_in_memory_data_source()
    if storage is None:
        storage = build_storage(settings)
    export_service = build_export_service(settings, data_source, storage, clock=clock)

    @asynccontextmanager
    async def lifespan(app_instance: FastAPI):
        logger.info("Application startup sequence initiated...")
        sweeper_task = asyncio.create_task(
            run_registry_sweeper(export_service, settings.EXPORT_REGISTRY_SWEEP_INTERVAL_SECONDS)
        )
        logger.info("Started export registry sweeper background task")
        try:
            yield
        finally:
            logger.info("Application shutdown sequence initiated...")
            sweeper_task.cancel()
            try:
                await sweeper_task
            except asyncio.CancelledError:
                pass
            export_service.shutdown(wait=settings.EXPORT_SHUTDOWN_WAIT)

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        version=__version__,
        lifespan=lifespan,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.export_service = export_service

    app.include_router(export_endpoints.router, prefix=settings.API_V1_PREFIX, tags=["V1 - Tenant Export"])
    app.include_router(health_router.router, tags=["Health Checks"])

    @app.get("/", tags=["Root"])
    async def read_root():
        return {"message": f"Welcome to {settings.APP_NAME} - Version {app.version}"}

    return app


app = create_app()
