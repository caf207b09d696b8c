"""Liveness endpoint for the tenant export service."""

import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Request

from tenant_export import __version__

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(request: Request) -> Dict[str, Any]:
    """Report whether the export service is up, with its registry size and queue depth."""
    export_service = getattr(request.app.state, "export_service", None)
    status_report: Dict[str, Any] = {
        "status": "healthy",
        "version": __version__,
        "timestamp": time.time(),
        "export_service_loaded": export_service is not None,
    }
    if export_service is None:
        status_report["status"] = "degraded"
        logger.warning(f"Health check: export service not ready: {status_report}")
        return status_report

    status_report["registered_results"] = len(export_service.registry)
    status_report["queue_depth"] = export_service.queue_depth
    status_report["max_queued_jobs"] = export_service.worker.max_queued_jobs
    return status_report
