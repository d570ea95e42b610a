from __future__ import annotations

import pytest

from core.settings import Settings
from core.storage import ObjectStoreGateway, StoreAvailable
from tests.fakes import TEST_SECRET, InMemoryProvider


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        jwt_secret=TEST_SECRET,
        callback_url="http://bridge:3001/callback",
        document_server_url="http://office.example.com",
        download_path=str(tmp_path / "downloads"),
    )


@pytest.fixture
def provider() -> InMemoryProvider:
    return InMemoryProvider()


@pytest.fixture
def gateway(provider: InMemoryProvider) -> ObjectStoreGateway:
    return ObjectStoreGateway(StoreAvailable(provider), presigned_url_expiry=604800)


@pytest.fixture
def disabled_gateway() -> ObjectStoreGateway:
    return ObjectStoreGateway.disabled("not configured")
