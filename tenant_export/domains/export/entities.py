"""Export domain entities for tenant data export."""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Generic, Iterable, List, Optional, TypeVar, Union
from uuid import UUID

from .exceptions import ExportStateError

T = TypeVar("T")

AUDIT_LOG_TABLE_NAME = "audit_log"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class ObjectType(str, Enum):
    """Exported record categories. Traversal follows declaration order."""
    TENANT = "tenant"
    CUSTOMER = "customer"
    QUEUE = "queue"
    RPC = "rpc"
    RULE_CHAIN = "rule_chain"
    OTA_PACKAGE = "ota_package"
    RESOURCE = "resource"
    EVENT = "event"
    RULE_NODE = "rule_node"
    ENTITY_VIEW = "entity_view"
    WIDGETS_BUNDLE = "widgets_bundle"
    WIDGET_TYPE = "widget_type"
    DASHBOARD = "dashboard"
    DEVICE_PROFILE = "device_profile"
    DEVICE = "device"
    DEVICE_CREDENTIALS = "device_credentials"
    ASSET_PROFILE = "asset_profile"
    ASSET = "asset"
    EDGE = "edge"
    NOTIFICATION_TARGET = "notification_target"
    NOTIFICATION_TEMPLATE = "notification_template"
    NOTIFICATION_RULE = "notification_rule"
    ALARM = "alarm"
    USER = "user"
    ATTRIBUTE_KV = "attribute_kv"
    LATEST_TS_KV = "latest_ts_kv"
    RELATION = "relation"
    AUDIT_LOG = "audit_log"


class AttributeScope(str, Enum):
    CLIENT_SCOPE = "client_scope"
    SERVER_SCOPE = "server_scope"
    SHARED_SCOPE = "shared_scope"


class EventType(str, Enum):
    """Event categories, each stored in its own partitioned table."""
    ERROR = "error"
    LC_EVENT = "lc_event"
    STATS = "stats"
    DEBUG_RULE_NODE = "debug_rule_node"
    DEBUG_RULE_CHAIN = "debug_rule_chain"

    @property
    def table(self) -> str:
        return _EVENT_TABLES[self]


_EVENT_TABLES = {
    EventType.ERROR: "error_event",
    EventType.LC_EVENT: "lc_event",
    EventType.STATS: "stats_event",
    EventType.DEBUG_RULE_NODE: "rule_node_debug_event",
    EventType.DEBUG_RULE_CHAIN: "rule_chain_debug_event",
}


class ExportStatus(str, Enum):
    """Export job status."""
    SUBMITTED = "submitted"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class EntityId:
    """Identifier of an entity instance; the join key for sub-exports."""
    entity_type: str
    id: UUID


@dataclass
class Tenant:
    id: UUID
    title: str
    created_time: int = 0
    region: Optional[str] = None
    additional_info: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Entity:
    """Generic tenant-owned entity as returned by the data-access layer."""
    id: Union[EntityId, UUID]
    tenant_id: UUID
    name: Optional[str] = None
    created_time: int = 0
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EntityRelation:
    from_id: EntityId
    to_id: EntityId
    type: str
    type_group: str = "COMMON"
    additional_info: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AttributeKvEntry:
    key: str
    value: Any
    last_update_ts: int
    version: Optional[int] = None


@dataclass
class AttributeKv:
    entity_id: EntityId
    scope: AttributeScope
    entry: AttributeKvEntry


@dataclass
class TsKvEntry:
    ts: int
    key: str
    value: Any
    version: Optional[int] = None


@dataclass
class LatestTsKv:
    entity_id: EntityId
    entry: TsKvEntry


@dataclass
class Event:
    id: UUID
    tenant_id: UUID
    entity_id: UUID
    type: EventType
    ts: int
    service_id: Optional[str] = None
    body: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AuditLog:
    id: UUID
    tenant_id: UUID
    created_time: int
    entity_id: Optional[EntityId] = None
    entity_name: Optional[str] = None
    user_name: Optional[str] = None
    action_type: str = ""
    action_status: str = "SUCCESS"
    action_data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DataWrapper:
    """A record paired with its object type; the unit handed to storage."""
    type: ObjectType
    data: Any

    @classmethod
    def of(cls, type: ObjectType, data: Any) -> "DataWrapper":
        return cls(type=type, data=data)


@dataclass(frozen=True)
class ExportConfig:
    """Export request configuration."""
    tenant_id: UUID
    skipped: FrozenSet[ObjectType] = frozenset()

    @classmethod
    def create(cls, tenant_id: UUID, skipped: Optional[Iterable[ObjectType]] = None) -> "ExportConfig":
        return cls(tenant_id=tenant_id, skipped=frozenset(skipped or ()))


@dataclass(frozen=True)
class PageLink:
    """Page-number cursor used by every paginated data-access call."""
    page_size: int
    page: int = 0

    def next_page_link(self) -> "PageLink":
        return PageLink(page_size=self.page_size, page=self.page + 1)


@dataclass(frozen=True)
class TimePageLink:
    """Page cursor restricted to the closed window [start_time, end_time] (epoch ms)."""
    page_link: PageLink
    start_time: int
    end_time: int

    @property
    def page_size(self) -> int:
        return self.page_link.page_size

    @property
    def page(self) -> int:
        return self.page_link.page


@dataclass
class PageData(Generic[T]):
    data: List[T]
    has_next: bool = False
    total_elements: Optional[int] = None
    total_pages: Optional[int] = None


class ExportResult:
    """
    Live status of one export job.

    Mutated only by the worker executing the job; pollers read through the
    properties and ``stats`` snapshot. Exactly one terminal transition
    (succeeded or failed) is accepted.
    """

    def __init__(self, tenant_id: UUID, config: Optional[ExportConfig] = None) -> None:
        self.tenant_id = tenant_id
        self.config = config
        self._lock = threading.Lock()
        self._status = ExportStatus.SUBMITTED
        self._error: Optional[str] = None
        self._stats: Dict[ObjectType, int] = {}
        self.submitted_at: datetime = _utcnow()
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None

    @property
    def status(self) -> ExportStatus:
        with self._lock:
            return self._status

    @property
    def done(self) -> bool:
        return self.status in (ExportStatus.SUCCEEDED, ExportStatus.FAILED)

    @property
    def success(self) -> bool:
        return self.status == ExportStatus.SUCCEEDED

    @property
    def error(self) -> Optional[str]:
        with self._lock:
            return self._error

    @property
    def stats(self) -> Dict[ObjectType, int]:
        with self._lock:
            return dict(self._stats)

    def count(self, type: ObjectType) -> int:
        with self._lock:
            return self._stats.get(type, 0)

    def report(self, type: ObjectType) -> None:
        with self._lock:
            self._stats[type] = self._stats.get(type, 0) + 1

    def mark_running(self) -> None:
        with self._lock:
            if self._status != ExportStatus.SUBMITTED:
                raise ExportStateError(f"Cannot start export for tenant {self.tenant_id} in {self._status.value} state")
            self._status = ExportStatus.RUNNING
            self.started_at = _utcnow()

    def mark_succeeded(self) -> None:
        self._finish(ExportStatus.SUCCEEDED, None)

    def mark_failed(self, error: str) -> None:
        self._finish(ExportStatus.FAILED, error)

    def _finish(self, status: ExportStatus, error: Optional[str]) -> None:
        with self._lock:
            if self._status in (ExportStatus.SUCCEEDED, ExportStatus.FAILED):
                raise ExportStateError(
                    f"Export for tenant {self.tenant_id} already finished with status {self._status.value}"
                )
            self._status = status
            self._error = error
            self.completed_at = _utcnow()

    def __repr__(self) -> str:
        return f"ExportResult(tenant_id={self.tenant_id}, status={self.status.value})"
