"""
In-memory data source.

Backs the development server and the test-suite with plain dictionaries.
Every data-access call is answered from an ``InMemoryDataStore``.
"""
import logging
import threading
from collections import defaultdict
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, TypeVar
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
from tenant_export.domains.export.traversal import DEFAULT_SKIPPED

from .interfaces import (
    AttributesDao,
    AuditLogDao,
    EntityDaoRegistry,
    EventDao,
    ExportDataSource,
    PartitioningRepository,
    RelationDao,
    TenantDao,
    TenantEntityDao,
    TimeseriesLatestDao,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _page(items: List[T], page_link: PageLink) -> PageData[T]:
    start = page_link.page * page_link.page_size
    end = start + page_link.page_size
    total_pages = (len(items) + page_link.page_size - 1) // page_link.page_size
    return PageData(
        data=items[start:end],
        has_next=end < len(items),
        total_elements=len(items),
        total_pages=total_pages,
    )


@dataclass
class InMemoryDataStore:
    """Mutable tenant data keyed the way the DAOs query it."""
    tenants: Dict[UUID, Tenant] = field(default_factory=dict)
    entities: Dict[Tuple[UUID, ObjectType], List[Any]] = field(default_factory=lambda: defaultdict(list))
    relations: Dict[EntityId, List[EntityRelation]] = field(default_factory=lambda: defaultdict(list))
    attributes: Dict[Tuple[EntityId, AttributeScope], List[AttributeKvEntry]] = field(
        default_factory=lambda: defaultdict(list)
    )
    latest_telemetry: Dict[EntityId, List[TsKvEntry]] = field(default_factory=lambda: defaultdict(list))
    events: Dict[Tuple[UUID, EventType], List[Event]] = field(default_factory=lambda: defaultdict(list))
    audit_logs: Dict[UUID, List[AuditLog]] = field(default_factory=lambda: defaultdict(list))
    partitions: Dict[str, List[int]] = field(default_factory=lambda: defaultdict(list))

    def add_tenant(self, tenant: Tenant) -> Tenant:
        self.tenants[tenant.id] = tenant
        return tenant

    def add_entity(self, tenant_id: UUID, object_type: ObjectType, entity: Any) -> Any:
        self.entities[(tenant_id, object_type)].append(entity)
        return entity

    def add_relation(self, relation: EntityRelation) -> EntityRelation:
        self.relations[relation.from_id].append(relation)
        return relation

    def add_attribute(self, entity_id: EntityId, scope: AttributeScope, entry: AttributeKvEntry) -> AttributeKvEntry:
        self.attributes[(entity_id, scope)].append(entry)
        return entry

    def add_latest(self, entity_id: EntityId, entry: TsKvEntry) -> TsKvEntry:
        self.latest_telemetry[entity_id].append(entry)
        return entry

    def add_event(self, event: Event) -> Event:
        self.events[(event.entity_id, event.type)].append(event)
        return event

    def add_audit_log(self, audit_log: AuditLog) -> AuditLog:
        self.audit_logs[audit_log.tenant_id].append(audit_log)
        return audit_log

    def add_partition(self, table: str, start_time: int) -> None:
        self.partitions[table].append(start_time)


class InMemoryTenantDao(TenantDao):
    def __init__(self, store: InMemoryDataStore):
        self.store = store

    def find_by_id(self, tenant_id: UUID) -> Optional[Tenant]:
        return self.store.tenants.get(tenant_id)


class InMemoryTenantEntityDao(TenantEntityDao):
    def __init__(self, store: InMemoryDataStore, object_type: ObjectType):
        self.store = store
        self.object_type = object_type

    def find_all_by_tenant_id(self, tenant_id: UUID, page_link: PageLink) -> PageData[Any]:
        return _page(self.store.entities.get((tenant_id, self.object_type), []), page_link)


class InMemoryRelationDao(RelationDao):
    def __init__(self, store: InMemoryDataStore):
        self.store = store

    def find_all_by_from(self, tenant_id: UUID, from_id: EntityId) -> List[EntityRelation]:
        return list(self.store.relations.get(from_id, []))


class InMemoryAttributesDao(AttributesDao):
    def __init__(self, store: InMemoryDataStore):
        self.store = store

    def find_all(self, tenant_id: UUID, entity_id: EntityId, scope: AttributeScope) -> List[AttributeKvEntry]:
        return list(self.store.attributes.get((entity_id, scope), []))


class InMemoryTimeseriesLatestDao(TimeseriesLatestDao):
    """Answers latest-telemetry queries on a background thread, like a real async driver."""

    def __init__(self, store: InMemoryDataStore):
        self.store = store

    def find_all_latest(self, tenant_id: UUID, entity_id: EntityId) -> "Future[List[TsKvEntry]]":
        future: "Future[List[TsKvEntry]]" = Future()

        def _complete():
            future.set_result(list(self.store.latest_telemetry.get(entity_id, [])))

        threading.Thread(target=_complete, name="latest-ts-fetch", daemon=True).start()
        return future


class InMemoryEventDao(EventDao):
    def __init__(self, store: InMemoryDataStore):
        self.store = store

    def find_events(
        self,
        tenant_id: UUID,
        entity_id: UUID,
        event_type: EventType,
        page_link: TimePageLink,
    ) -> PageData[Event]:
        events = [
            event for event in self.store.events.get((entity_id, event_type), [])
            if event.tenant_id == tenant_id and page_link.start_time <= event.ts <= page_link.end_time
        ]
        events.sort(key=lambda e: e.ts)
        return _page(events, page_link.page_link)


class InMemoryAuditLogDao(AuditLogDao):
    def __init__(self, store: InMemoryDataStore):
        self.store = store

    def find_audit_logs_by_tenant_id(self, tenant_id: UUID, page_link: TimePageLink) -> PageData[AuditLog]:
        audit_logs = [
            audit_log for audit_log in self.store.audit_logs.get(tenant_id, [])
            if page_link.start_time <= audit_log.created_time <= page_link.end_time
        ]
        audit_logs.sort(key=lambda a: a.created_time)
        return _page(audit_logs, page_link.page_link)


class InMemoryPartitioningRepository(PartitioningRepository):
    def __init__(self, store: InMemoryDataStore):
        self.store = store

    def fetch_partitions(self, table: str) -> List[int]:
        return list(self.store.partitions.get(table, []))


def build_in_memory_data_source(store: Optional[InMemoryDataStore] = None) -> ExportDataSource:
    """Wire every in-memory DAO around one store, registering all tenant entity categories."""
    store = store or InMemoryDataStore()
    registry = EntityDaoRegistry()
    for object_type in ObjectType:
        if object_type not in DEFAULT_SKIPPED:
            registry.register(object_type, InMemoryTenantEntityDao(store, object_type))
    logger.info(f"In-memory data source initialized with {len(store.tenants)} tenants")
    return ExportDataSource(
        tenant_dao=InMemoryTenantDao(store),
        entity_dao_registry=registry,
        relation_dao=InMemoryRelationDao(store),
        attributes_dao=InMemoryAttributesDao(store),
        timeseries_latest_dao=InMemoryTimeseriesLatestDao(store),
        event_dao=InMemoryEventDao(store),
        audit_log_dao=InMemoryAuditLogDao(store),
        partitioning_repository=InMemoryPartitioningRepository(store),
    )
