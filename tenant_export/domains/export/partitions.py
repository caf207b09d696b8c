"""Time-partition planning for partitioned history tables."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Optional

if TYPE_CHECKING:
    from tenant_export.infrastructure.dao.interfaces import PartitioningRepository

logger = logging.getLogger(__name__)


def current_time_millis() -> int:
    return int(time.time() * 1000)


def plan_partitions(start_times: Iterable[int], now_ms: int) -> Dict[int, int]:
    """
    Turn partition start times into non-overlapping ``start -> end`` windows.

    Each window ends one millisecond before the next partition starts; the
    last window ends at ``now_ms``. Windows are returned in ascending order.
    Repeated start times collapse into a single window.

    Args:
        start_times: Partition start times in epoch milliseconds, any order.
        now_ms: End of the most recent window.

    Returns:
        Ordered mapping of window start to inclusive window end, empty when
        the table has no partitions.
    """
    starts = sorted(set(start_times))
    partitions: Dict[int, int] = {}
    for i, start_time in enumerate(starts):
        if i == len(starts) - 1:
            end_time = now_ms
        else:
            end_time = starts[i + 1] - 1
        partitions[start_time] = end_time
    return partitions


class PartitionPlanner:
    """Plans query windows for a table from its recorded partitions."""

    def __init__(
        self,
        partitioning_repository: PartitioningRepository,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.partitioning_repository = partitioning_repository
        self._clock = clock or current_time_millis

    def get_partitions(self, table: str) -> Dict[int, int]:
        start_times = self.partitioning_repository.fetch_partitions(table)
        if not start_times:
            logger.debug(f"No partitions found for table {table}")
            return {}
        return plan_partitions(start_times, self._clock())
