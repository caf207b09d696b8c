"""Export API endpoints for whole-tenant data export."""

import logging
from typing import BinaryIO, Dict, Iterator
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from tenant_export.api.v1.schemas import (
    ExportQueueResponse,
    TenantExportJobResponse,
    TenantExportRequest,
    TenantExportStatusResponse,
)
from tenant_export.core.config import Settings
from tenant_export.core.dependencies import get_export_service, get_settings
from tenant_export.domains.export.entities import ExportConfig
from tenant_export.domains.export.exceptions import (
    ExportAlreadyRunningError,
    ExportArtifactNotFoundError,
    ExportFailedError,
    ExportNotReadyError,
    ExportQueueFullError,
    ExportResultNotFoundError,
    ExportWorkerShutdownError,
    TenantNotFoundError,
)
from tenant_export.domains.export.services import TenantExportService
from tenant_export.infrastructure.storage.s3_storage import S3ServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/export", tags=["export"])

DOWNLOAD_CHUNK_SIZE = 64 * 1024


def _iter_stream(stream: BinaryIO, chunk_size: int = DOWNLOAD_CHUNK_SIZE) -> Iterator[bytes]:
    try:
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        stream.close()


def _download_url(request: Request, tenant_id: UUID) -> str:
    return str(request.url_for("download_tenant_export", tenant_id=str(tenant_id)).path)


@router.post("/tenants", response_model=TenantExportJobResponse, status_code=status.HTTP_202_ACCEPTED)
def export_tenant(
    payload: TenantExportRequest,
    request: Request,
    export_service: TenantExportService = Depends(get_export_service),
    settings: Settings = Depends(get_settings),
) -> TenantExportJobResponse:
    """
    Start a background export of every entity owned by the tenant.

    The call returns as soon as the job is queued; poll the status URL and
    download the archive once the job succeeded.
    """
    config = ExportConfig.create(payload.tenant_id, payload.skipped)
    try:
        job_id = export_service.export_tenant(config)
    except TenantNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ExportAlreadyRunningError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ExportQueueFullError as e:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(e))
    except ExportWorkerShutdownError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    result = export_service.get_result(job_id)
    logger.info(f"Created tenant export job {job_id} (skipped: {sorted(t.value for t in config.skipped)})")

    return TenantExportJobResponse(
        job_id=job_id,
        status=result.status,
        submitted_at=result.submitted_at,
        expires_in_hours=settings.EXPORT_EXPIRY_HOURS,
        status_url=str(request.url_for("get_tenant_export_status", tenant_id=str(job_id)).path),
    )


@router.get("/tenants/{tenant_id}/status", response_model=TenantExportStatusResponse)
def get_tenant_export_status(
    tenant_id: UUID,
    request: Request,
    export_service: TenantExportService = Depends(get_export_service),
) -> TenantExportStatusResponse:
    """Get the status and per-type counters of a tenant export."""
    try:
        result = export_service.get_result(tenant_id)
    except ExportResultNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return TenantExportStatusResponse.from_result(result, download_url=_download_url(request, tenant_id))


@router.get("/tenants/{tenant_id}/download")
def download_tenant_export(
    tenant_id: UUID,
    export_service: TenantExportService = Depends(get_export_service),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    """Download the export archive of a finished tenant export."""
    try:
        stream = export_service.download_result(tenant_id)
    except (ExportResultNotFoundError, ExportArtifactNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ExportNotReadyError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Not ready yet")
    except ExportFailedError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except S3ServiceError as e:
        logger.error(f"Failed to fetch export archive for tenant {tenant_id}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    file_name = settings.EXPORT_ARCHIVE_FILENAME
    logger.info(f"Serving export archive {file_name} for tenant {tenant_id}")

    return StreamingResponse(
        _iter_stream(stream),
        media_type="application/x-tar",
        headers={
            "Content-Disposition": f"attachment;filename={file_name}",
            "x-filename": file_name,
        },
    )


@router.delete("/tenants/{tenant_id}")
def delete_tenant_export(
    tenant_id: UUID,
    export_service: TenantExportService = Depends(get_export_service),
) -> Dict[str, str]:
    """Drop a finished export and delete its artifacts."""
    try:
        export_service.delete_result(tenant_id)
    except ExportResultNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ExportAlreadyRunningError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    logger.info(f"Deleted export of tenant {tenant_id}")
    return {"message": "Export deleted successfully"}


@router.get("/queue", response_model=ExportQueueResponse)
def get_export_queue(
    export_service: TenantExportService = Depends(get_export_service),
) -> ExportQueueResponse:
    """Report how many export jobs are queued or running."""
    return ExportQueueResponse(
        queue_depth=export_service.queue_depth,
        max_queued_jobs=export_service.worker.max_queued_jobs,
    )
