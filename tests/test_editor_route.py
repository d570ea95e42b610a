from __future__ import annotations

import time
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from fastapi.testclient import TestClient

from core.container import BridgeServices
from core.download_fetcher import DownloadFetcher
from core.storage import ObjectStoreGateway, StoreAvailable
from core.storage.s3_provider import S3StorageProvider
from main import create_app
from security.editor_jwt import EditorTokenIssuer
from tests.fakes import (
    TEST_SECRET,
    FailingProvider,
    SlowBucketProvider,
    UnreachableClient,
    static_transport,
    with_overrides,
)

EDITOR_OUTPUT_URL = "http://office.example.com/cache/files/output.docx"


def _client(settings, gateway, routes=None) -> TestClient:
    fetcher = DownloadFetcher(transport=static_transport(routes or {}))
    services = BridgeServices.build(settings, gateway=gateway, fetcher=fetcher)
    return TestClient(create_app(services=services))


@pytest.fixture
def client(settings, gateway) -> TestClient:
    return _client(settings, gateway, {EDITOR_OUTPUT_URL: httpx.Response(200, content=b"saved-document-body")})


def test_config_requires_file_id(client):
    response = client.post("/config", json={"userId": "u1"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["data"]["code"] == "CONFIGURATION_ERROR"


def test_config_for_missing_document_is_not_found(client, provider):
    response = client.post("/config", json={"fileId": "missing.docx"})

    assert response.status_code == 404
    assert response.json()["data"]["code"] == "RESOURCE_NOT_FOUND"
    assert provider.presign_calls == []


def test_config_returns_signed_view_config(client, provider):
    provider.objects["report.docx"] = b"original"

    response = client.post(
        "/config",
        json={"fileId": "report.docx", "userId": "u1", "userName": "Ada", "mode": "view"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    config = data["config"]
    assert data["documentServerUrl"] == "http://office.example.com"
    assert config["document"]["permissions"]["edit"] is False
    assert config["document"]["url"].startswith("http://minio:9000/documents/report.docx?")
    assert config["documentType"] == "word"
    assert config["editorConfig"]["user"] == {"id": "u1", "name": "Ada"}

    callback = urlsplit(config["editorConfig"]["callbackUrl"])
    query = parse_qs(callback.query)
    assert callback.path == "/callback"
    assert query["downUrl"] == [config["document"]["url"]]
    assert query["fileUrl"] == ["report.docx"]

    claims = EditorTokenIssuer(TEST_SECRET).verify(data["token"])
    assert claims["document"]["key"] == config["document"]["key"]
    assert config["token"] == data["token"]


def test_config_permission_overrides_win(client, provider):
    provider.objects["sheet.xlsx"] = b"cells"

    response = client.post(
        "/config",
        json={"fileId": "sheet.xlsx", "mode": "edit", "permissions": {"download": False}},
    )

    config = response.json()["data"]["config"]
    assert config["documentType"] == "cell"
    assert config["document"]["permissions"]["edit"] is True
    assert config["document"]["permissions"]["download"] is False


def test_callback_acknowledges_and_saves_final_version(client, provider):
    response = client.post(
        "/callback",
        params={"downUrl": EDITOR_OUTPUT_URL, "fileUrl": "folder/report.docx"},
        json={"status": 6, "key": "k1", "users": ["u1"]},
    )

    assert response.status_code == 200
    assert response.json() == {"error": 0}
    assert provider.put_calls == ["report.docx"]
    assert provider.objects["report.docx"] == b"saved-document-body"


def test_interim_save_callback_writes_nothing(client, provider):
    response = client.post(
        "/callback",
        params={"downUrl": EDITOR_OUTPUT_URL, "fileUrl": "report.docx"},
        json={"status": 2, "url": EDITOR_OUTPUT_URL},
    )

    assert response.json() == {"error": 0}
    assert provider.put_calls == []


def test_callback_acknowledges_even_when_save_fails(settings):
    failing = FailingProvider()
    client = _client(
        settings,
        ObjectStoreGateway(StoreAvailable(failing)),
        {EDITOR_OUTPUT_URL: httpx.Response(200, content=b"body")},
    )

    response = client.post(
        "/callback",
        params={"downUrl": EDITOR_OUTPUT_URL, "fileUrl": "report.docx"},
        json={"status": 6},
    )

    assert response.json() == {"error": 0}
    assert failing.put_calls == ["report.docx"]


def test_callback_without_store_saves_to_local_disk(settings, disabled_gateway, tmp_path):
    client = _client(settings, disabled_gateway, {EDITOR_OUTPUT_URL: httpx.Response(200, content=b"12345")})

    client.post(
        "/callback",
        params={"downUrl": EDITOR_OUTPUT_URL, "fileUrl": "notes.docx"},
        json={"status": 6},
    )

    assert (tmp_path / "downloads" / "notes.docx").read_bytes() == b"12345"


def test_callback_without_status_is_acknowledged_and_ignored(client, provider):
    response = client.post(
        "/callback",
        params={"downUrl": EDITOR_OUTPUT_URL, "fileUrl": "report.docx"},
        json={"key": "k1"},
    )

    assert response.status_code == 200
    assert response.json() == {"error": 0}
    assert provider.put_calls == []


def test_invalid_config_body_is_rejected_with_field_errors(client):
    response = client.post("/config", json={"fileId": "report.docx", "permissions": {"edit": "maybe"}})

    assert response.status_code == 422
    details = response.json()["data"]["details"]
    assert details["fieldErrors"][0]["path"] == "permissions.edit"


def test_health_reports_service_name(client, settings):
    body = client.get("/health").json()

    assert body["status"] == "ok"
    assert body["service"] == settings.service_name
    assert "timestamp" in body


def _ready_response(client: TestClient, attempts: int = 50):
    """Poll /ready until bucket provisioning has finished."""
    response = client.get("/ready")
    for _ in range(attempts):
        if response.json()["status"] != "pending":
            break
        time.sleep(0.05)
        response = client.get("/ready")
    return response


def test_health_answers_while_bucket_provisioning_runs(settings):
    provider = SlowBucketProvider()
    with _client(settings, ObjectStoreGateway(StoreAvailable(provider))) as client:
        health = client.get("/health")
        pending = client.get("/ready")
        provider.release.set()
        ready = _ready_response(client)

    assert health.status_code == 200
    assert pending.status_code == 503
    assert pending.json() == {"status": "pending", "storage": None}
    assert ready.status_code == 200
    assert provider.bucket_created is True


def test_ready_after_startup_provisions_bucket(settings, gateway, provider):
    with _client(settings, gateway) as client:
        response = _ready_response(client)

    assert response.status_code == 200
    assert response.json()["status"] == "ready"
    assert provider.bucket_created is True


def test_not_ready_when_bucket_provisioning_fails(settings):
    with _client(settings, ObjectStoreGateway(StoreAvailable(FailingProvider()))) as client:
        response = _ready_response(client)

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "not_ready"
    assert "refused" in body["storage"]["message"]


def test_presigned_url_requires_file(client):
    assert client.get("/test/presigned-url").status_code == 400
    assert client.post("/test/presigned-url", json={}).status_code == 400


def test_presigned_url_for_missing_file_is_not_found(client):
    assert client.get("/test/presigned-url", params={"file": "nope.docx"}).status_code == 404


def test_presigned_url_rejects_invalid_expiry(client, provider):
    provider.objects["report.docx"] = b"x"

    response = client.get("/test/presigned-url", params={"file": "report.docx", "expiry": "soon"})

    assert response.status_code == 400


def test_presigned_url_without_store_is_server_error(settings, disabled_gateway):
    client = _client(settings, disabled_gateway)

    response = client.get("/test/presigned-url", params={"file": "report.docx"})

    assert response.status_code == 500
    assert response.json()["data"]["code"] == "STORE_UNAVAILABLE"


@pytest.mark.parametrize("method", ["get", "post"])
def test_presigned_url_reports_expiry(client, provider, method):
    provider.objects["report.docx"] = b"x"

    if method == "get":
        response = client.get("/test/presigned-url", params={"file": "report.docx", "expiry": "3600"})
    else:
        response = client.post("/test/presigned-url", json={"file": "report.docx", "expiry": 3600})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["file"] == "report.docx"
    assert data["expiry"] == 3600
    assert data["expiryHours"] == 1.0
    assert "X-Amz-Expires=3600" in data["presignedUrl"]


def test_presigned_url_defaults_to_configured_expiry(client, provider):
    provider.objects["report.docx"] = b"x"

    data = client.get("/test/presigned-url", params={"file": "report.docx"}).json()["data"]

    assert data["expiry"] == 604800
    assert data["expiryHours"] == 168.0


def test_routes_are_mounted_under_api_prefix(settings, gateway, provider):
    provider.objects["report.docx"] = b"x"
    client = _client(with_overrides(settings, api_prefix="/onlyofficeServer"), gateway)

    assert client.post("/onlyofficeServer/config", json={"fileId": "report.docx"}).status_code == 200
    assert client.post("/config", json={"fileId": "report.docx"}).status_code == 404
    assert client.get("/health").status_code == 200


@pytest.fixture
def unreachable_store_client(settings) -> TestClient:
    provider = S3StorageProvider(
        bucket_name="documents",
        endpoint_url="http://minio:9000",
        access_key="minioadmin",
        secret_key="minioadmin",
        client=UnreachableClient(),
    )
    return _client(settings, ObjectStoreGateway(StoreAvailable(provider)))


def test_config_reports_unreachable_store(unreachable_store_client):
    response = unreachable_store_client.post("/config", json={"fileId": "report.docx"})

    assert response.status_code == 500
    data = response.json()["data"]
    assert data["code"] == "STORE_UNAVAILABLE"
    assert "Could not connect" in data["details"]["reason"]


def test_presigned_url_reports_unreachable_store(unreachable_store_client):
    response = unreachable_store_client.get("/test/presigned-url", params={"file": "report.docx"})

    assert response.status_code == 500
    assert response.json()["data"]["code"] == "STORE_UNAVAILABLE"
