"""
S3-backed storage for tenant exports.

Records are staged on local disk through ``LocalExportStorage``; the finished
archive is uploaded to the bucket and served from there, so it survives the
local workspace being recycled.
"""
from dataclasses import dataclass
from typing import BinaryIO, Optional
from uuid import UUID
import logging

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, NoCredentialsError, PartialCredentialsError

from tenant_export.domains.export.entities import DataWrapper, ObjectType
from tenant_export.domains.export.exceptions import ExportArtifactNotFoundError

from .base import ExportStorage
from .local_storage import LocalExportStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class S3Configuration:
    """S3 storage configuration."""
    endpoint_url: Optional[str]
    access_key_id: Optional[str]
    secret_access_key: Optional[str]
    bucket_name: str
    region_name: Optional[str] = None
    prefix: str = "exports"
    max_retries: int = 3
    timeout_seconds: int = 300


class S3ServiceError(Exception):
    """S3 storage specific exceptions."""
    pass


class S3ExportStorage(ExportStorage):
    """Stages records locally and keeps the final archive in S3."""

    def __init__(self, config: S3Configuration, staging: LocalExportStorage):
        self.config = config
        self.staging = staging
        self._validate_configuration()
        self._client = None

        logger.info(f"S3ExportStorage initialized for bucket: {config.bucket_name}")

    def _validate_configuration(self) -> None:
        if not self.config.bucket_name:
            raise S3ServiceError("S3 bucket name is required")

        if not self.config.access_key_id or not self.config.secret_access_key:
            logger.warning("S3 credentials not provided - will use default AWS credential chain")

        if self.config.max_retries < 0:
            raise S3ServiceError("Max retries must be non-negative")

        if self.config.timeout_seconds <= 0:
            raise S3ServiceError("Timeout must be positive")

    def _get_client(self):
        """Get or create S3 client."""
        if self._client is None:
            boto_config = Config(
                retries={'max_attempts': self.config.max_retries},
                connect_timeout=self.config.timeout_seconds,
                read_timeout=self.config.timeout_seconds
            )

            self._client = boto3.client(
                's3',
                endpoint_url=self.config.endpoint_url,
                aws_access_key_id=self.config.access_key_id,
                aws_secret_access_key=self.config.secret_access_key,
                region_name=self.config.region_name,
                config=boto_config
            )

            logger.debug("S3 client created")

        return self._client

    def archive_key(self, tenant_id: UUID) -> str:
        key = f"{tenant_id}/{self.staging.archive_filename}"
        prefix = self.config.prefix.strip("/")
        return f"{prefix}/{key}" if prefix else key

    def init(self, tenant_id: UUID) -> None:
        self.staging.init(tenant_id)

    def save(self, tenant_id: UUID, type: ObjectType, wrapper: DataWrapper) -> None:
        self.staging.save(tenant_id, type, wrapper)

    def close_export_data(self, tenant_id: UUID) -> None:
        self.staging.close_export_data(tenant_id)

    def archive_export_data(self, tenant_id: UUID) -> None:
        self.staging.archive_export_data(tenant_id)
        archive_path = self.staging.archive_path(tenant_id)
        s3_key = self.archive_key(tenant_id)

        try:
            self._get_client().upload_file(str(archive_path), self.config.bucket_name, s3_key)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise S3ServiceError(f"S3 ClientError [{error_code}] uploading {s3_key}: {e}") from e
        except (NoCredentialsError, PartialCredentialsError) as e:
            raise S3ServiceError(f"S3 Credentials Error: {e}") from e

        self.staging.clean_up_export_data(tenant_id)
        logger.info(f"[{tenant_id}] Uploaded export archive to s3://{self.config.bucket_name}/{s3_key}")

    def download_export_data(self, tenant_id: UUID) -> BinaryIO:
        s3_key = self.archive_key(tenant_id)
        try:
            response = self._get_client().get_object(Bucket=self.config.bucket_name, Key=s3_key)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code in ('NoSuchKey', '404'):
                raise ExportArtifactNotFoundError(tenant_id, f"s3://{self.config.bucket_name}/{s3_key}") from e
            raise S3ServiceError(f"S3 ClientError [{error_code}] downloading {s3_key}: {e}") from e
        return response['Body']

    def clean_up_export_data(self, tenant_id: UUID) -> None:
        s3_key = self.archive_key(tenant_id)
        try:
            self._get_client().delete_object(Bucket=self.config.bucket_name, Key=s3_key)
            logger.info(f"[{tenant_id}] Deleted export archive s3://{self.config.bucket_name}/{s3_key}")
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise S3ServiceError(f"S3 ClientError [{error_code}] deleting {s3_key}: {e}") from e
        finally:
            self.staging.clean_up_export_data(tenant_id)
