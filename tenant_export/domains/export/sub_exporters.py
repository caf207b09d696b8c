"""
Sub-exporters for data related to a traversed entity.

Each sub-exporter reads one kind of related data (relations, attributes,
latest telemetry, historical events) for a single entity and writes it
through the job context. ``AuditLogExporter`` is tenant-scoped and runs once
per job.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TYPE_CHECKING, Any, Callable, Iterable

from .context import ExportJobContext
from .entities import (
    AUDIT_LOG_TABLE_NAME,
    AttributeKv,
    AttributeScope,
    EntityId,
    EventType,
    LatestTsKv,
    ObjectType,
    PageData,
    PageLink,
    TimePageLink,
)
from .exceptions import LatestTelemetryTimeoutError
from .pagination import PageDataIterable
from .partitions import PartitionPlanner

if TYPE_CHECKING:
    from tenant_export.infrastructure.dao.interfaces import (
        AttributesDao,
        AuditLogDao,
        EventDao,
        RelationDao,
        TimeseriesLatestDao,
    )

logger = logging.getLogger(__name__)


def iterate_partitioned(
    planner: PartitionPlanner,
    table: str,
    fetch_fn: Callable[[TimePageLink], PageData[Any]],
    page_size: int,
) -> Iterable[Any]:
    """Yield every row of a partitioned table, one window and page at a time."""
    partitions = planner.get_partitions(table)
    for start_time, end_time in partitions.items():
        def fetch_page(page_link: PageLink, start_time=start_time, end_time=end_time):
            return fetch_fn(TimePageLink(page_link, start_time, end_time))

        yield from PageDataIterable(fetch_page, page_size)


class EntitySubExporter(ABC):
    """Exports one kind of data related to a single entity."""

    object_type: ObjectType

    @abstractmethod
    def export(self, context: ExportJobContext, entity_id: EntityId) -> None:
        pass


class RelationsExporter(EntitySubExporter):
    """Exports relations where the entity is the source; target side is covered by the target's own pass."""

    object_type = ObjectType.RELATION

    def __init__(self, relation_dao: RelationDao):
        self.relation_dao = relation_dao

    def export(self, context: ExportJobContext, entity_id: EntityId) -> None:
        for relation in self.relation_dao.find_all_by_from(context.tenant_id, entity_id):
            context.save(ObjectType.RELATION, relation)


class EventsExporter(EntitySubExporter):
    object_type = ObjectType.EVENT

    def __init__(self, event_dao: EventDao, planner: PartitionPlanner, page_size: int = 512):
        self.event_dao = event_dao
        self.planner = planner
        self.page_size = page_size

    def export(self, context: ExportJobContext, entity_id: EntityId) -> None:
        for event_type in EventType:
            def fetch(page_link: TimePageLink, event_type=event_type):
                return self.event_dao.find_events(context.tenant_id, entity_id.id, event_type, page_link)

            for event in iterate_partitioned(self.planner, event_type.table, fetch, self.page_size):
                context.save(ObjectType.EVENT, event)


class AttributesExporter(EntitySubExporter):
    object_type = ObjectType.ATTRIBUTE_KV

    def __init__(self, attributes_dao: AttributesDao):
        self.attributes_dao = attributes_dao

    def export(self, context: ExportJobContext, entity_id: EntityId) -> None:
        for scope in AttributeScope:
            for entry in self.attributes_dao.find_all(context.tenant_id, entity_id, scope):
                context.save(ObjectType.ATTRIBUTE_KV, AttributeKv(entity_id=entity_id, scope=scope, entry=entry))


class LatestTelemetryExporter(EntitySubExporter):
    """
    Exports the latest value of every telemetry key of the entity.

    The data layer answers asynchronously; the worker blocks on the answer
    for at most ``timeout_seconds``, so a slow fetch delays every queued job.
    """

    object_type = ObjectType.LATEST_TS_KV

    def __init__(self, timeseries_latest_dao: TimeseriesLatestDao, timeout_seconds: float = 60.0):
        self.timeseries_latest_dao = timeseries_latest_dao
        self.timeout_seconds = timeout_seconds

    def export(self, context: ExportJobContext, entity_id: EntityId) -> None:
        future = self.timeseries_latest_dao.find_all_latest(context.tenant_id, entity_id)
        try:
            latest_telemetry = future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError as e:
            future.cancel()
            raise LatestTelemetryTimeoutError(entity_id, self.timeout_seconds) from e

        for entry in latest_telemetry:
            context.save(ObjectType.LATEST_TS_KV, LatestTsKv(entity_id=entity_id, entry=entry))


class AuditLogExporter:
    """Exports the tenant's audit log; scoped to the tenant, not to an entity."""

    object_type = ObjectType.AUDIT_LOG

    def __init__(self, audit_log_dao: AuditLogDao, planner: PartitionPlanner, page_size: int = 512):
        self.audit_log_dao = audit_log_dao
        self.planner = planner
        self.page_size = page_size

    def export(self, context: ExportJobContext) -> None:
        def fetch(page_link: TimePageLink):
            return self.audit_log_dao.find_audit_logs_by_tenant_id(context.tenant_id, page_link)

        for audit_log in iterate_partitioned(self.planner, AUDIT_LOG_TABLE_NAME, fetch, self.page_size):
            context.save(ObjectType.AUDIT_LOG, audit_log)
        logger.debug(f"[{context.tenant_id}] Exported {context.result.count(ObjectType.AUDIT_LOG)} audit logs")
