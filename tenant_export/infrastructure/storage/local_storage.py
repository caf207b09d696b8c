"""
Local filesystem storage for tenant exports.

Layout per tenant::

    <base_dir>/<tenant_id>/data/<object_type>.jsonl   while the job runs
    <base_dir>/<tenant_id>/data.tar                   after archiving
"""
import logging
import shutil
import tarfile
import threading
from pathlib import Path
from typing import BinaryIO, Dict, TextIO, Tuple, Union
from uuid import UUID

from tenant_export.domains.export.entities import DataWrapper, ObjectType
from tenant_export.domains.export.exceptions import ExportArtifactNotFoundError

from .base import ExportStorage, serialize_record

logger = logging.getLogger(__name__)


class LocalExportStorage(ExportStorage):
    """Writes one JSON-lines file per object type and tars them on archive."""

    def __init__(self, base_dir: Union[str, Path], archive_filename: str = "data.tar"):
        self.base_dir = Path(base_dir)
        self.archive_filename = archive_filename
        self._handles: Dict[Tuple[UUID, ObjectType], TextIO] = {}
        self._lock = threading.Lock()

    def tenant_dir(self, tenant_id: UUID) -> Path:
        return self.base_dir / str(tenant_id)

    def data_dir(self, tenant_id: UUID) -> Path:
        return self.tenant_dir(tenant_id) / "data"

    def archive_path(self, tenant_id: UUID) -> Path:
        return self.tenant_dir(tenant_id) / self.archive_filename

    def init(self, tenant_id: UUID) -> None:
        self._close_handles(tenant_id)
        tenant_dir = self.tenant_dir(tenant_id)
        if tenant_dir.exists():
            shutil.rmtree(tenant_dir)
        self.data_dir(tenant_id).mkdir(parents=True, exist_ok=True)
        logger.info(f"[{tenant_id}] Initialized export workspace at {tenant_dir}")

    def save(self, tenant_id: UUID, type: ObjectType, wrapper: DataWrapper) -> None:
        line = serialize_record(wrapper)
        with self._lock:
            handle = self._handles.get((tenant_id, type))
            if handle is None:
                path = self.data_dir(tenant_id) / f"{type.value}.jsonl"
                handle = open(path, "a", encoding="utf-8")
                self._handles[(tenant_id, type)] = handle
            handle.write(line)
            handle.write("\n")

    def close_export_data(self, tenant_id: UUID) -> None:
        self._close_handles(tenant_id)

    def archive_export_data(self, tenant_id: UUID) -> None:
        self._close_handles(tenant_id)
        data_dir = self.data_dir(tenant_id)
        archive_path = self.archive_path(tenant_id)

        with tarfile.open(archive_path, "w") as archive:
            for path in sorted(data_dir.glob("*.jsonl")):
                archive.add(path, arcname=path.name)

        shutil.rmtree(data_dir, ignore_errors=True)
        logger.info(f"[{tenant_id}] Archived export data to {archive_path} ({archive_path.stat().st_size} bytes)")

    def download_export_data(self, tenant_id: UUID) -> BinaryIO:
        archive_path = self.archive_path(tenant_id)
        if not archive_path.exists():
            raise ExportArtifactNotFoundError(tenant_id, str(archive_path))
        return open(archive_path, "rb")

    def clean_up_export_data(self, tenant_id: UUID) -> None:
        self._close_handles(tenant_id)
        tenant_dir = self.tenant_dir(tenant_id)
        if tenant_dir.exists():
            shutil.rmtree(tenant_dir, ignore_errors=True)
            logger.info(f"[{tenant_id}] Cleaned up export data at {tenant_dir}")

    def _close_handles(self, tenant_id: UUID) -> None:
        with self._lock:
            keys = [key for key in self._handles if key[0] == tenant_id]
            for key in keys:
                self._handles.pop(key).close()
