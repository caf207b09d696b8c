"""Request/response models for the v1 export API."""
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from tenant_export.domains.export.entities import ExportResult, ExportStatus, ObjectType


class TenantExportRequest(BaseModel):
    """Request model for a whole-tenant export."""
    tenant_id: UUID = Field(..., description="Tenant to export")
    skipped: List[ObjectType] = Field(default_factory=list, description="Object types to leave out of the export")


class TenantExportJobResponse(BaseModel):
    """Response model for export job submission."""
    job_id: UUID = Field(..., description="Job handle (the tenant id)")
    status: ExportStatus = Field(..., description="Current job status")
    submitted_at: datetime = Field(..., description="Submission timestamp")
    expires_in_hours: int = Field(..., description="Result retention after last access")
    status_url: str = Field(..., description="Status polling URL")


class TenantExportStatusResponse(BaseModel):
    """Response model for export job status."""
    job_id: UUID = Field(..., description="Job handle (the tenant id)")
    status: ExportStatus = Field(..., description="Current status")
    done: bool = Field(..., description="Whether the job reached a terminal state")
    success: bool = Field(..., description="Whether the job finished successfully")
    error: Optional[str] = Field(None, description="Stored failure trace")
    stats: Dict[ObjectType, int] = Field(default_factory=dict, description="Exported record count per object type")
    submitted_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    download_url: Optional[str] = Field(None, description="Download URL if completed")

    @classmethod
    def from_result(cls, result: ExportResult, download_url: Optional[str] = None) -> "TenantExportStatusResponse":
        return cls(
            job_id=result.tenant_id,
            status=result.status,
            done=result.done,
            success=result.success,
            error=result.error,
            stats=result.stats,
            submitted_at=result.submitted_at,
            started_at=result.started_at,
            completed_at=result.completed_at,
            download_url=download_url if result.success else None,
        )


class ExportQueueResponse(BaseModel):
    queue_depth: int = Field(..., description="Queued plus running export jobs")
    max_queued_jobs: int = Field(..., description="Queue capacity")
