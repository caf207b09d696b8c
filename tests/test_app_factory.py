"""
Tests for application wiring in tenant_export.main.
"""
import asyncio

import pytest

from tenant_export.core.config import Settings
from tenant_export.infrastructure.storage import LocalExportStorage, S3ExportStorage
from tenant_export.main import build_export_service, build_storage, create_app, run_registry_sweeper


def test_build_local_storage(tmp_path):
    storage = build_storage(Settings(EXPORT_BASE_DIR=str(tmp_path), EXPORT_ARCHIVE_FILENAME="export.tar"))

    assert isinstance(storage, LocalExportStorage)
    assert storage.base_dir == tmp_path.resolve()
    assert storage.archive_filename == "export.tar"


def test_build_s3_storage(tmp_path, mocker):
    mocker.patch("tenant_export.infrastructure.storage.s3_storage.boto3.client")
    storage = build_storage(Settings(
        EXPORT_BASE_DIR=str(tmp_path),
        EXPORT_STORAGE_BACKEND="s3",
        S3_BUCKET_NAME="bucket",
        EXPORT_S3_PREFIX="tenants",
    ))

    assert isinstance(storage, S3ExportStorage)
    assert storage.config.bucket_name == "bucket"
    assert isinstance(storage.staging, LocalExportStorage)


def test_unknown_storage_backend(tmp_path):
    with pytest.raises(ValueError):
        build_storage(Settings(EXPORT_BASE_DIR=str(tmp_path), EXPORT_STORAGE_BACKEND="ftp"))


def test_build_export_service_applies_settings(data_source, local_storage):
    service = build_export_service(
        Settings(EXPORT_MAX_QUEUED_JOBS=3, EXPORT_EXPIRY_HOURS=2, EXPORT_ALLOW_RESUBMIT_WHILE_RUNNING=True),
        data_source,
        local_storage,
    )
    try:
        assert service.worker.max_queued_jobs == 3
        assert service.registry.ttl_seconds == 7200
        assert service.allow_resubmit_while_running is True
        assert service.traversal.page_size == 100
        assert service.audit_log_exporter.page_size == 512
    finally:
        service.shutdown(wait=True)


def test_created_app_starts_no_threads_until_used(data_source, local_storage, test_settings):
    app = create_app(data_source=data_source, storage=local_storage, settings=test_settings)
    service = app.state.export_service

    assert service.worker._executor is None
    assert service.registry._cleanup_executor is None


@pytest.mark.asyncio
async def test_registry_sweeper_purges_periodically(mocker):
    export_service = mocker.Mock()
    export_service.registry.purge_expired.return_value = 1

    task = asyncio.create_task(run_registry_sweeper(export_service, interval_seconds=0.01))
    await asyncio.sleep(0.1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert export_service.registry.purge_expired.call_count >= 2


@pytest.mark.asyncio
async def test_registry_sweeper_survives_errors(mocker):
    calls = []

    def purge_expired():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return 0

    export_service = mocker.Mock()
    export_service.registry.purge_expired.side_effect = purge_expired

    task = asyncio.create_task(run_registry_sweeper(export_service, interval_seconds=0.01))
    await asyncio.sleep(0.1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert export_service.registry.purge_expired.call_count >= 2
