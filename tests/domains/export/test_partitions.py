"""
Unit tests for partition window planning.
"""
import pytest

from tenant_export.domains.export.partitions import PartitionPlanner, plan_partitions


def test_plan_partitions_windows_end_before_next_start():
    partitions = plan_partitions([100, 200, 300], now_ms=1000)

    assert partitions == {100: 199, 200: 299, 300: 1000}
    assert list(partitions) == [100, 200, 300]


def test_plan_partitions_sorts_and_collapses_duplicates():
    partitions = plan_partitions([300, 100, 200, 100], now_ms=500)

    assert partitions == {100: 199, 200: 299, 300: 500}


def test_plan_partitions_single_partition_ends_now():
    assert plan_partitions([42], now_ms=99) == {42: 99}


def test_plan_partitions_empty():
    assert plan_partitions([], now_ms=99) == {}


def test_planner_uses_clock_for_last_window(mocker):
    repository = mocker.Mock()
    repository.fetch_partitions.return_value = [200, 100]
    planner = PartitionPlanner(repository, clock=lambda: 5000)

    assert planner.get_partitions("lc_event") == {100: 199, 200: 5000}
    repository.fetch_partitions.assert_called_once_with("lc_event")


@pytest.mark.parametrize("start_times", [[], None])
def test_planner_returns_empty_for_unpartitioned_table(mocker, start_times):
    repository = mocker.Mock()
    repository.fetch_partitions.return_value = start_times
    clock = mocker.Mock(return_value=5000)
    planner = PartitionPlanner(repository, clock=clock)

    assert planner.get_partitions("audit_log") == {}
    clock.assert_not_called()
