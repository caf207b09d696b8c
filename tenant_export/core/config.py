from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Optional
from pathlib import Path


class Settings(BaseSettings):
    APP_NAME: str = "Tenant Export Service"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Storage settings
    EXPORT_BASE_DIR: str = "./exports"
    EXPORT_STORAGE_BACKEND: str = Field(default="local", description="Export storage backend: 'local' or 's3'.")
    EXPORT_ARCHIVE_FILENAME: str = "data.tar"

    S3_ENDPOINT_URL: Optional[str] = None
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    S3_BUCKET_NAME: str = "tenant-exports"
    S3_REGION_NAME: Optional[str] = None
    EXPORT_S3_PREFIX: str = "exports"

    # Export job settings
    EXPORT_EXPIRY_HOURS: int = Field(default=24, gt=0, description="Result TTL measured from last access.")
    EXPORT_ENTITY_PAGE_SIZE: int = Field(default=100, gt=0)
    EXPORT_EVENT_PAGE_SIZE: int = Field(default=512, gt=0)
    EXPORT_MAX_QUEUED_JOBS: int = Field(default=16, gt=0, description="Upper bound of queued plus running jobs.")
    EXPORT_LATEST_TELEMETRY_TIMEOUT_SECONDS: float = Field(default=60.0, gt=0)
    EXPORT_REGISTRY_SWEEP_INTERVAL_SECONDS: int = Field(default=300, gt=0)
    EXPORT_ALLOW_RESUBMIT_WHILE_RUNNING: bool = Field(
        default=False,
        description="Replace the registry entry of a still running job on re-submission instead of rejecting it.",
    )
    EXPORT_SHUTDOWN_WAIT: bool = False

    @property
    def export_ttl_seconds(self) -> float:
        return self.EXPORT_EXPIRY_HOURS * 3600.0

    @property
    def resolved_export_base_path(self) -> Path:
        return Path(self.EXPORT_BASE_DIR).resolve()

    model_config = {
        "extra": "ignore",
        "env_file": ".env",
        "env_file_encoding": "utf-8"
    }


settings = Settings()
