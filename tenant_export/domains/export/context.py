"""Per-job write path shared by the traversal and the sub-exporters."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from uuid import UUID

from .entities import DataWrapper, ExportResult, ObjectType

if TYPE_CHECKING:
    from tenant_export.infrastructure.storage.base import ExportStorage

logger = logging.getLogger(__name__)


class ExportJobContext:
    """Writes records of one job to storage and counts them on the job's result."""

    def __init__(self, tenant_id: UUID, storage: ExportStorage, result: ExportResult) -> None:
        self.tenant_id = tenant_id
        self.storage = storage
        self.result = result

    def save(self, type: ObjectType, entity: Any) -> None:
        self.storage.save(self.tenant_id, type, DataWrapper.of(type, entity))
        # Counted only once storage accepted the record.
        self.result.report(type)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"[{self.tenant_id}][{type.value}] Saved entity {entity}")
