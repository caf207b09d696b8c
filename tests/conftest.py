"""
Global fixtures for the tenant export test suite.
"""
import uuid
from typing import Dict

import pytest

from tenant_export.core.config import Settings
from tenant_export.domains.export.entities import (
    AttributeKvEntry,
    AttributeScope,
    Entity,
    EntityId,
    EntityRelation,
    Event,
    EventType,
    ObjectType,
    Tenant,
    TsKvEntry,
)
from tenant_export.domains.export.services import TenantExportService, storage_cleanup_listener
from tenant_export.infrastructure.dao.memory import InMemoryDataStore, build_in_memory_data_source
from tenant_export.infrastructure.storage.local_storage import LocalExportStorage
from tenant_export.services.export_worker import ExportWorker
from tenant_export.services.result_registry import ExportResultRegistry

TENANT_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
DEVICE_1_ID = EntityId("DEVICE", uuid.UUID("22222222-2222-2222-2222-222222222221"))
DEVICE_2_ID = EntityId("DEVICE", uuid.UUID("22222222-2222-2222-2222-222222222222"))

# Stats of a successful export of ``populated_store`` with no extra skipped types.
EXPECTED_STATS: Dict[ObjectType, int] = {
    ObjectType.TENANT: 1,
    ObjectType.DEVICE: 2,
    ObjectType.RELATION: 2,
    ObjectType.ATTRIBUTE_KV: 2,
    ObjectType.LATEST_TS_KV: 2,
    ObjectType.EVENT: 6,
}


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tenant_id() -> uuid.UUID:
    return TENANT_ID


@pytest.fixture
def device_ids():
    return DEVICE_1_ID, DEVICE_2_ID


@pytest.fixture
def expected_stats() -> Dict[ObjectType, int]:
    return dict(EXPECTED_STATS)


@pytest.fixture
def populated_store() -> InMemoryDataStore:
    """
    One tenant with two devices. Each device has one outgoing relation, one
    server attribute, one latest telemetry value and three lifecycle events
    spread over two lc_event partitions.
    """
    store = InMemoryDataStore()
    store.add_tenant(Tenant(id=TENANT_ID, title="Acme"))

    for index, device_id in enumerate((DEVICE_1_ID, DEVICE_2_ID)):
        store.add_entity(TENANT_ID, ObjectType.DEVICE, Entity(id=device_id, tenant_id=TENANT_ID, name=f"Device {index}"))
        other = DEVICE_2_ID if device_id == DEVICE_1_ID else DEVICE_1_ID
        store.add_relation(EntityRelation(from_id=device_id, to_id=other, type="Contains"))
        store.add_attribute(device_id, AttributeScope.SERVER_SCOPE, AttributeKvEntry("firmware", "1.0.0", 10))
        store.add_latest(device_id, TsKvEntry(ts=300, key="temperature", value=21.5))
        for ts in (150, 250, 300):
            store.add_event(Event(
                id=uuid.uuid4(),
                tenant_id=TENANT_ID,
                entity_id=device_id.id,
                type=EventType.LC_EVENT,
                ts=ts,
                body={"event": "STARTED"},
            ))

    store.add_partition(EventType.LC_EVENT.table, 100)
    store.add_partition(EventType.LC_EVENT.table, 200)
    return store


@pytest.fixture
def data_source(populated_store):
    return build_in_memory_data_source(populated_store)


@pytest.fixture
def local_storage(tmp_path) -> LocalExportStorage:
    return LocalExportStorage(tmp_path / "exports")


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        APP_NAME="Tenant Export Test",
        EXPORT_BASE_DIR=str(tmp_path / "exports"),
        EXPORT_MAX_QUEUED_JOBS=4,
        EXPORT_LATEST_TELEMETRY_TIMEOUT_SECONDS=5.0,
        EXPORT_REGISTRY_SWEEP_INTERVAL_SECONDS=3600,
    )


@pytest.fixture
def export_service(data_source, local_storage, fake_clock):
    """Service wired with the in-memory data source, local storage and a fake registry clock."""
    registry = ExportResultRegistry(
        ttl_seconds=24 * 3600,
        removal_listener=storage_cleanup_listener(local_storage),
        is_evictable=lambda result: result.done,
        clock=fake_clock,
    )
    worker = ExportWorker(max_queued_jobs=4)
    service = TenantExportService(data_source, local_storage, worker, registry, latest_telemetry_timeout_seconds=5.0)
    yield service
    service.shutdown(wait=True)
