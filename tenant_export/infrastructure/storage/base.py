"""Storage adapter interface and record serialization for tenant exports."""
from abc import ABC, abstractmethod
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, BinaryIO, Dict
from uuid import UUID
import json

from tenant_export.domains.export.entities import DataWrapper, ObjectType


def to_jsonable(value: Any) -> Any:
    """Convert records to JSON-compatible structures."""
    if is_dataclass(value) and not isinstance(value, type):
        return {key: to_jsonable(item) for key, item in asdict(value).items()}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(to_jsonable(key)): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(item) for item in value]
    if hasattr(value, "model_dump"):
        return to_jsonable(value.model_dump())
    return value


def serialize_record(wrapper: DataWrapper) -> str:
    """One JSON line per record: ``{"type": ..., "data": ...}``."""
    payload: Dict[str, Any] = {"type": wrapper.type.value, "data": to_jsonable(wrapper.data)}
    return json.dumps(payload, ensure_ascii=False, sort_keys=True)


class ExportStorage(ABC):
    """Durable sink for exported records and the final archive."""

    @abstractmethod
    def init(self, tenant_id: UUID) -> None:
        """Prepare an empty per-tenant workspace."""
        pass

    @abstractmethod
    def save(self, tenant_id: UUID, type: ObjectType, wrapper: DataWrapper) -> None:
        pass

    def close_export_data(self, tenant_id: UUID) -> None:
        """Flush and release the workspace without archiving; written records stay in place."""
        pass

    @abstractmethod
    def archive_export_data(self, tenant_id: UUID) -> None:
        """Finalize the workspace into the downloadable archive."""
        pass

    @abstractmethod
    def download_export_data(self, tenant_id: UUID) -> BinaryIO:
        pass

    @abstractmethod
    def clean_up_export_data(self, tenant_id: UUID) -> None:
        pass
