"""Data-access collaborators of the tenant export."""

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

__all__ = [
    "AttributesDao",
    "AuditLogDao",
    "EntityDaoRegistry",
    "EventDao",
    "ExportDataSource",
    "PartitioningRepository",
    "RelationDao",
    "TenantDao",
    "TenantEntityDao",
    "TimeseriesLatestDao",
]
