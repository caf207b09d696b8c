"""
Data-access interfaces consumed by the tenant export.

The export never queries durable storage itself; it goes through these
abstractions, one per data source, bundled into an ``ExportDataSource``.
"""
from abc import ABC, abstractmethod
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import UUID

from tenant_export.domains.export.entities import (
    AttributeKvEntry,
    AttributeScope,
    AuditLog,
    EntityId,
    EntityRelation,
    Event,
    EventType,
    ObjectType,
    PageData,
    PageLink,
    Tenant,
    TimePageLink,
    TsKvEntry,
)
from tenant_export.domains.export.exceptions import UnsupportedObjectTypeError


class TenantDao(ABC):
    @abstractmethod
    def find_by_id(self, tenant_id: UUID) -> Optional[Tenant]:
        """Return the tenant or None when it does not exist."""
        pass


class TenantEntityDao(ABC):
    """Data access for one tenant-owned entity category."""

    @abstractmethod
    def find_all_by_tenant_id(self, tenant_id: UUID, page_link: PageLink) -> PageData[Any]:
        pass


class EntityDaoRegistry:
    """Lookup table from object type to the DAO serving that category."""

    def __init__(self, daos: Optional[Dict[ObjectType, TenantEntityDao]] = None) -> None:
        self._daos: Dict[ObjectType, TenantEntityDao] = dict(daos or {})

    def register(self, object_type: ObjectType, dao: TenantEntityDao) -> None:
        self._daos[object_type] = dao

    def get_tenant_entity_dao(self, object_type: ObjectType) -> TenantEntityDao:
        dao = self._daos.get(object_type)
        if dao is None:
            raise UnsupportedObjectTypeError(object_type)
        return dao

    def __contains__(self, object_type: ObjectType) -> bool:
        return object_type in self._daos


class RelationDao(ABC):
    @abstractmethod
    def find_all_by_from(self, tenant_id: UUID, from_id: EntityId) -> List[EntityRelation]:
        pass


class AttributesDao(ABC):
    @abstractmethod
    def find_all(self, tenant_id: UUID, entity_id: EntityId, scope: AttributeScope) -> List[AttributeKvEntry]:
        pass


class TimeseriesLatestDao(ABC):
    @abstractmethod
    def find_all_latest(self, tenant_id: UUID, entity_id: EntityId) -> "Future[List[TsKvEntry]]":
        """Fetch the latest value of every telemetry key; completes asynchronously."""
        pass


class EventDao(ABC):
    @abstractmethod
    def find_events(
        self,
        tenant_id: UUID,
        entity_id: UUID,
        event_type: EventType,
        page_link: TimePageLink,
    ) -> PageData[Event]:
        pass


class AuditLogDao(ABC):
    @abstractmethod
    def find_audit_logs_by_tenant_id(self, tenant_id: UUID, page_link: TimePageLink) -> PageData[AuditLog]:
        pass


class PartitioningRepository(ABC):
    @abstractmethod
    def fetch_partitions(self, table: str) -> List[int]:
        """Return partition start times (epoch ms) recorded for a table."""
        pass


@dataclass
class ExportDataSource:
    """Every data source the export reads from."""
    tenant_dao: TenantDao
    entity_dao_registry: EntityDaoRegistry
    relation_dao: RelationDao
    attributes_dao: AttributesDao
    timeseries_latest_dao: TimeseriesLatestDao
    event_dao: EventDao
    audit_log_dao: AuditLogDao
    partitioning_repository: PartitioningRepository
