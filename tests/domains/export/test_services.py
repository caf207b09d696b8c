"""
Tests for TenantExportService job orchestration, run against the in-memory
data source and local storage.
"""
import json
import tarfile
import threading
import time
import uuid

import pytest

from tenant_export.domains.export.entities import ExportConfig, ExportStatus, ObjectType
from tenant_export.domains.export.exceptions import (
    ExportAlreadyRunningError,
    ExportFailedError,
    ExportNotReadyError,
    ExportQueueFullError,
    ExportResultNotFoundError,
    ExportWorkerShutdownError,
    TenantNotFoundError,
)

JOB_TIMEOUT = 10


def block_worker(worker):
    """Occupy the single worker thread until the returned event is set."""
    gate = threading.Event()
    worker.submit(gate.wait, JOB_TIMEOUT)
    return gate


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def run_export(export_service, tenant_id, skipped=None):
    job_id = export_service.export_tenant(ExportConfig.create(tenant_id, skipped))
    assert export_service.worker.drain(timeout=JOB_TIMEOUT)
    return export_service.get_result(job_id)


def test_export_returns_tenant_id_as_handle(export_service, tenant_id):
    gate = block_worker(export_service.worker)
    try:
        job_id = export_service.export_tenant(ExportConfig.create(tenant_id))

        assert job_id == tenant_id
        assert export_service.get_result(job_id).status == ExportStatus.SUBMITTED
        assert export_service.queue_depth == 2
    finally:
        gate.set()


def test_full_export_counts_and_archive(export_service, tenant_id, expected_stats):
    result = run_export(export_service, tenant_id)

    assert result.success, result.error
    assert result.stats == expected_stats

    with export_service.download_result(tenant_id) as stream:
        with tarfile.open(fileobj=stream, mode="r:") as archive:
            names = sorted(archive.getnames())
            tenant_lines = archive.extractfile("tenant.jsonl").read().decode("utf-8").splitlines()
            event_lines = archive.extractfile("event.jsonl").read().decode("utf-8").splitlines()

    assert names == [
        "attribute_kv.jsonl",
        "device.jsonl",
        "event.jsonl",
        "latest_ts_kv.jsonl",
        "relation.jsonl",
        "tenant.jsonl",
    ]
    tenant_record = json.loads(tenant_lines[0])
    assert tenant_record["type"] == "tenant"
    assert tenant_record["data"]["id"] == str(tenant_id)
    assert len(event_lines) == 6


def test_skipped_types_are_absent_from_stats(export_service, tenant_id, expected_stats):
    result = run_export(export_service, tenant_id, skipped=[ObjectType.EVENT, ObjectType.ATTRIBUTE_KV])

    del expected_stats[ObjectType.EVENT]
    del expected_stats[ObjectType.ATTRIBUTE_KV]
    assert result.success
    assert result.stats == expected_stats


def test_unknown_tenant_is_rejected_synchronously(export_service):
    unknown = uuid.uuid4()

    with pytest.raises(TenantNotFoundError):
        export_service.export_tenant(ExportConfig.create(unknown))

    assert unknown not in export_service.registry
    assert export_service.queue_depth == 0


def test_failure_is_captured_on_result(mocker, export_service, tenant_id):
    mocker.patch.object(export_service.data_source.attributes_dao, "find_all", side_effect=RuntimeError("boom"))

    result = run_export(export_service, tenant_id)

    assert result.done
    assert not result.success
    assert result.status == ExportStatus.FAILED
    assert "RuntimeError: boom" in result.error
    with pytest.raises(ExportFailedError) as exc_info:
        export_service.download_result(tenant_id)
    assert str(exc_info.value).startswith("Tenant export failed: ")
    assert exc_info.value.error == result.error


def test_storage_failure_fails_job(mocker, export_service, tenant_id):
    mocker.patch.object(export_service.storage, "archive_export_data", side_effect=OSError("read-only fs"))

    result = run_export(export_service, tenant_id)

    assert result.status == ExportStatus.FAILED
    assert "read-only fs" in result.error


def test_download_before_completion_is_not_ready(export_service, tenant_id):
    gate = block_worker(export_service.worker)
    try:
        export_service.export_tenant(ExportConfig.create(tenant_id))

        with pytest.raises(ExportNotReadyError):
            export_service.download_result(tenant_id)
    finally:
        gate.set()
    assert export_service.worker.drain(timeout=JOB_TIMEOUT)
    assert export_service.get_result(tenant_id).success


def test_unknown_handle_is_not_found(export_service):
    with pytest.raises(ExportResultNotFoundError):
        export_service.get_result(uuid.uuid4())
    with pytest.raises(ExportResultNotFoundError):
        export_service.download_result(uuid.uuid4())


def test_resubmit_while_running_is_rejected(export_service, tenant_id):
    gate = block_worker(export_service.worker)
    try:
        export_service.export_tenant(ExportConfig.create(tenant_id))
        first = export_service.get_result(tenant_id)

        with pytest.raises(ExportAlreadyRunningError):
            export_service.export_tenant(ExportConfig.create(tenant_id))
        assert export_service.get_result(tenant_id) is first
    finally:
        gate.set()


def test_resubmit_while_running_replaces_entry_when_allowed(export_service, tenant_id, expected_stats):
    export_service.allow_resubmit_while_running = True
    gate = block_worker(export_service.worker)
    try:
        export_service.export_tenant(ExportConfig.create(tenant_id))
        first = export_service.get_result(tenant_id)
        export_service.export_tenant(ExportConfig.create(tenant_id))
        second = export_service.get_result(tenant_id)
    finally:
        gate.set()

    assert export_service.worker.drain(timeout=JOB_TIMEOUT)
    assert second is not first
    assert export_service.get_result(tenant_id) is second
    assert first.done and second.success
    assert second.stats == expected_stats


def test_resubmit_after_completion_cleans_previous_artifacts(mocker, export_service, tenant_id):
    first = run_export(export_service, tenant_id)
    cleanup = mocker.spy(export_service.storage, "clean_up_export_data")

    second = run_export(export_service, tenant_id)

    cleanup.assert_called_once_with(tenant_id)
    assert second is not first
    assert second.success


def test_queue_full_rejects_without_registering(export_service, tenant_id):
    gates = [block_worker(export_service.worker) for _ in range(export_service.worker.max_queued_jobs)]
    try:
        with pytest.raises(ExportQueueFullError):
            export_service.export_tenant(ExportConfig.create(tenant_id))
        assert tenant_id not in export_service.registry
    finally:
        for gate in gates:
            gate.set()


def test_delete_result_removes_entry_and_artifacts(export_service, tenant_id, local_storage):
    run_export(export_service, tenant_id)
    archive = local_storage.archive_path(tenant_id)
    assert archive.exists()

    export_service.delete_result(tenant_id)

    with pytest.raises(ExportResultNotFoundError):
        export_service.get_result(tenant_id)
    assert wait_for(lambda: not local_storage.tenant_dir(tenant_id).exists())


def test_delete_result_refused_while_running(export_service, tenant_id):
    gate = block_worker(export_service.worker)
    try:
        export_service.export_tenant(ExportConfig.create(tenant_id))

        with pytest.raises(ExportAlreadyRunningError):
            export_service.delete_result(tenant_id)
        assert tenant_id in export_service.registry
    finally:
        gate.set()


def test_finished_result_expires_after_idle_ttl(export_service, tenant_id, fake_clock, local_storage):
    run_export(export_service, tenant_id)

    fake_clock.advance(23 * 3600)
    assert export_service.get_result(tenant_id).success  # access resets the TTL
    fake_clock.advance(23 * 3600)
    assert export_service.get_result(tenant_id).success

    fake_clock.advance(24 * 3600)
    with pytest.raises(ExportResultNotFoundError):
        export_service.get_result(tenant_id)
    assert wait_for(lambda: not local_storage.archive_path(tenant_id).exists())


def test_pending_result_never_expires(export_service, tenant_id, fake_clock):
    gate = block_worker(export_service.worker)
    try:
        export_service.export_tenant(ExportConfig.create(tenant_id))
        fake_clock.advance(48 * 3600)

        assert export_service.registry.purge_expired() == 0
        assert export_service.get_result(tenant_id).status == ExportStatus.SUBMITTED
    finally:
        gate.set()


def test_idle_ttl_starts_when_job_finishes(export_service, tenant_id, fake_clock):
    gate = block_worker(export_service.worker)
    try:
        export_service.export_tenant(ExportConfig.create(tenant_id))
        fake_clock.advance(25 * 3600)
    finally:
        gate.set()
    assert export_service.worker.drain(timeout=JOB_TIMEOUT)

    assert export_service.registry.purge_expired() == 0
    assert export_service.get_result(tenant_id).success

    fake_clock.advance(24 * 3600)
    assert export_service.registry.purge_expired() == 1


def test_failed_job_leaves_flushed_workspace(mocker, export_service, tenant_id, local_storage):
    mocker.patch.object(export_service.data_source.attributes_dao, "find_all", side_effect=RuntimeError("boom"))

    result = run_export(export_service, tenant_id)

    assert result.status == ExportStatus.FAILED
    data_dir = local_storage.data_dir(tenant_id)
    assert (data_dir / "tenant.jsonl").stat().st_size > 0
    assert (data_dir / "device.jsonl").stat().st_size > 0
    assert not any(key[0] == tenant_id for key in local_storage._handles)
    assert not local_storage.archive_path(tenant_id).exists()


def test_submit_after_worker_shutdown_is_not_registered(export_service, tenant_id):
    export_service.worker.shutdown(wait=True)

    with pytest.raises(ExportWorkerShutdownError):
        export_service.export_tenant(ExportConfig.create(tenant_id))
    assert tenant_id not in export_service.registry
