"""Storage adapters for tenant export artifacts."""

from .base import ExportStorage, serialize_record, to_jsonable
from .local_storage import LocalExportStorage
from .s3_storage import S3Configuration, S3ExportStorage, S3ServiceError

__all__ = [
    "ExportStorage",
    "LocalExportStorage",
    "S3Configuration",
    "S3ExportStorage",
    "S3ServiceError",
    "serialize_record",
    "to_jsonable",
]
