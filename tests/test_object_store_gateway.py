from __future__ import annotations

import pytest

from core.errors import DocumentNotFound, StoreUnavailable
from core.settings import Settings
from core.storage import ObjectStoreGateway, StoreAvailable, StoreDisabled
from core.storage.s3_provider import S3StorageProvider
from tests.fakes import FailingProvider


def test_gateway_is_disabled_when_credentials_are_missing():
    gateway = ObjectStoreGateway.from_settings(Settings(minio_endpoint="minio", minio_access_key="key"))

    assert gateway.enabled is False
    assert isinstance(gateway.handle, StoreDisabled)


def test_gateway_builds_s3_provider_from_settings():
    settings = Settings(
        minio_endpoint="minio",
        minio_port=9000,
        minio_access_key="minioadmin",
        minio_secret_key="minioadmin",
        minio_bucket="office-docs",
        presigned_url_expiry=600,
    )

    gateway = ObjectStoreGateway.from_settings(settings)

    assert gateway.enabled is True
    assert isinstance(gateway.handle.provider, S3StorageProvider)
    assert gateway.default_expiry == 600
    assert gateway.direct_url("a/b.docx") == "http://minio:9000/office-docs/a/b.docx"


@pytest.mark.parametrize(
    "operation",
    [
        lambda gw: gw.put("a.docx", b"x"),
        lambda gw: gw.exists("a.docx"),
        lambda gw: gw.presigned_url("a.docx"),
        lambda gw: gw.direct_url("a.docx"),
        lambda gw: gw.delete("a.docx"),
    ],
)
def test_disabled_gateway_raises_store_unavailable(disabled_gateway, operation):
    with pytest.raises(StoreUnavailable):
        operation(disabled_gateway)


def test_presigned_url_for_missing_key_fails_before_signing(gateway, provider):
    with pytest.raises(DocumentNotFound) as exc_info:
        gateway.presigned_url("missing.docx")

    assert exc_info.value.key == "missing.docx"
    assert provider.presign_calls == []


def test_presigned_url_uses_requested_or_default_expiry(gateway, provider):
    provider.objects["report.docx"] = b"doc"

    requested = gateway.presigned_url("report.docx", 120)
    default = gateway.presigned_url("report.docx")

    assert "X-Amz-Expires=120" in requested
    assert "X-Amz-Expires=604800" in default
    assert provider.presign_calls == [("report.docx", 120), ("report.docx", 604800)]


def test_put_stores_bytes_and_returns_object_url(gateway, provider):
    url = gateway.put("report.xlsx", b"sheet-bytes")

    assert url == "http://minio:9000/documents/report.xlsx"
    assert provider.objects["report.xlsx"] == b"sheet-bytes"
    assert provider.content_types["report.xlsx"] == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    assert gateway.exists("report.xlsx") is True


def test_delete_removes_object(gateway, provider):
    provider.objects["old.docx"] = b"x"

    gateway.delete("old.docx")

    assert gateway.exists("old.docx") is False


def test_provision_creates_bucket_once(gateway, provider):
    first = gateway.provision()
    second = gateway.provision()

    assert first.ready is True and "created" in first.message
    assert second.ready is True and "ready" in second.message
    assert provider.bucket_created is True


def test_provision_failure_is_reported_not_raised():
    gateway = ObjectStoreGateway(StoreAvailable(FailingProvider()))

    readiness = gateway.provision()

    assert readiness.ready is False
    assert "refused" in readiness.message


def test_provision_of_disabled_gateway_reports_local_backend(disabled_gateway):
    readiness = disabled_gateway.provision()

    assert readiness.ready is True
    assert readiness.backend == "local"
