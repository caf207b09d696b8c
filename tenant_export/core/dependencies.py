"""
Module for managing and providing application dependencies.
Leverages FastAPI's dependency injection system and app.state for preloaded components.
"""
import logging

from fastapi import Request, HTTPException, status

from tenant_export.core.config import Settings, settings as default_settings
from tenant_export.domains.export.services import TenantExportService

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    """Settings the application was created with, falling back to the module-level instance."""
    return getattr(request.app.state, "settings", None) or default_settings


def get_export_service(request: Request) -> TenantExportService:
    """Retrieves the TenantExportService instance created at startup from app.state."""
    export_service = getattr(request.app.state, "export_service", None)
    if export_service is None:
        logger.error("TenantExportService not found in app.state. Startup might have failed.")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Export service not available.")
    return export_service
