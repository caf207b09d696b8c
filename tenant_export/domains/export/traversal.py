"""Walks every entity category of a tenant and fans out to the sub-exporters."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, AbstractSet, List, Optional, Sequence

from .context import ExportJobContext
from .entities import EntityId, ObjectType, Tenant
from .pagination import PageDataIterable
from .sub_exporters import EntitySubExporter

if TYPE_CHECKING:
    from tenant_export.infrastructure.dao.interfaces import EntityDaoRegistry

logger = logging.getLogger(__name__)

# Exported by dedicated sub-exporters, or once per job for the tenant itself.
DEFAULT_SKIPPED = frozenset({
    ObjectType.TENANT,
    ObjectType.RELATION,
    ObjectType.EVENT,
    ObjectType.ATTRIBUTE_KV,
    ObjectType.LATEST_TS_KV,
    ObjectType.AUDIT_LOG,
})


def get_entity_id(entity) -> Optional[EntityId]:
    entity_id = getattr(entity, "id", None)
    if isinstance(entity_id, EntityId):
        return entity_id
    return None


class EntityTraversalEngine:
    """
    Exports the tenant record and then every tenant-owned entity.

    Categories are visited in ``ObjectType`` declaration order and each one is
    paged through its registered DAO. Every entity that carries an
    ``EntityId`` is handed to the sub-exporters, in the order they were given.
    Any error propagates and aborts the job.
    """

    def __init__(
        self,
        entity_dao_registry: EntityDaoRegistry,
        sub_exporters: Sequence[EntitySubExporter],
        page_size: int = 100,
    ) -> None:
        self.entity_dao_registry = entity_dao_registry
        self.sub_exporters = list(sub_exporters)
        self.page_size = page_size

    def categories_to_export(self, skipped: AbstractSet[ObjectType]) -> List[ObjectType]:
        excluded = DEFAULT_SKIPPED | frozenset(skipped)
        return [object_type for object_type in ObjectType if object_type not in excluded]

    def traverse(self, context: ExportJobContext, tenant: Tenant, skipped: AbstractSet[ObjectType]) -> None:
        tenant_id = context.tenant_id
        if ObjectType.TENANT not in skipped:
            context.save(ObjectType.TENANT, tenant)

        sub_exporters = [exporter for exporter in self.sub_exporters if exporter.object_type not in skipped]

        for object_type in self.categories_to_export(skipped):
            logger.debug(f"[{tenant_id}] Exporting {object_type.value} entities")
            dao = self.entity_dao_registry.get_tenant_entity_dao(object_type)
            entities = PageDataIterable(
                lambda page_link, dao=dao: dao.find_all_by_tenant_id(tenant_id, page_link),
                self.page_size,
            )

            for entity in entities:
                context.save(object_type, entity)

                entity_id = get_entity_id(entity)
                if entity_id is not None:
                    for exporter in sub_exporters:
                        exporter.export(context, entity_id)

            logger.debug(f"[{tenant_id}] Exported {context.result.count(object_type)} {object_type.value} entities")
