from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from typing import Union

from core.errors import DocumentNotFound, StoreUnavailable
from core.settings import DEFAULT_PRESIGNED_URL_EXPIRY, Settings
from core.storage.provider import ObjectStoreProvider
from core.storage.s3_provider import S3StorageProvider
from core.storage.types import StoreReadiness

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreAvailable:
    provider: ObjectStoreProvider


@dataclass(frozen=True)
class StoreDisabled:
    reason: str


StoreHandle = Union[StoreAvailable, StoreDisabled]


class ObjectStoreGateway:
    """Single owner of the object-store handle.

    A gateway built without credentials holds ``StoreDisabled``; every storage
    operation then raises ``StoreUnavailable`` and callers fall back to local disk.
    """

    def __init__(self, handle: StoreHandle, *, presigned_url_expiry: int = DEFAULT_PRESIGNED_URL_EXPIRY) -> None:
        self._handle = handle
        self._presigned_url_expiry = presigned_url_expiry

    @classmethod
    def from_settings(cls, settings: Settings) -> "ObjectStoreGateway":
        if not settings.object_store_configured:
            logger.warning("Object store configuration incomplete; saving documents to %s", settings.download_path)
            return cls.disabled("Object store endpoint or credentials are not configured")

        provider = S3StorageProvider(
            bucket_name=settings.minio_bucket,
            endpoint_url=settings.object_store_endpoint_url,
            access_key=settings.minio_access_key or "",
            secret_key=settings.minio_secret_key or "",
            region=settings.minio_region,
        )
        return cls(StoreAvailable(provider), presigned_url_expiry=settings.presigned_url_expiry)

    @classmethod
    def disabled(cls, reason: str) -> "ObjectStoreGateway":
        return cls(StoreDisabled(reason))

    @property
    def handle(self) -> StoreHandle:
        return self._handle

    @property
    def enabled(self) -> bool:
        return isinstance(self._handle, StoreAvailable)

    @property
    def default_expiry(self) -> int:
        return self._presigned_url_expiry

    def _provider(self) -> ObjectStoreProvider:
        if isinstance(self._handle, StoreDisabled):
            raise StoreUnavailable(self._handle.reason)
        return self._handle.provider

    def put(self, key: str, payload: bytes, content_type: str | None = None) -> str:
        provider = self._provider()
        if content_type is None:
            content_type = mimetypes.guess_type(key)[0]
        provider.put_object(key=key, payload=payload, content_type=content_type)
        logger.info("Stored %s (%d bytes) in bucket %s", key, len(payload), provider.bucket)
        return provider.object_url(key=key)

    def exists(self, key: str) -> bool:
        return self._provider().object_exists(key=key)

    def presigned_url(self, key: str, expires_in: int | None = None) -> str:
        provider = self._provider()
        if not provider.object_exists(key=key):
            raise DocumentNotFound(key)
        expiry = expires_in or self._presigned_url_expiry
        return provider.presigned_get_url(key=key, expires_in=expiry)

    def direct_url(self, key: str) -> str:
        return self._provider().object_url(key=key)

    def delete(self, key: str) -> None:
        self._provider().delete_object(key=key)
        logger.info("Deleted %s", key)

    def provision(self) -> StoreReadiness:
        """Make sure the bucket exists. Failures are reported, not raised."""
        if isinstance(self._handle, StoreDisabled):
            return StoreReadiness(ready=True, backend="local", message=self._handle.reason)

        provider = self._handle.provider
        try:
            created = provider.ensure_bucket()
        except Exception as exc:
            logger.exception("Provisioning bucket %s failed", provider.bucket)
            return StoreReadiness(ready=False, backend=provider.backend_name, message=str(exc))

        message = f"Bucket {provider.bucket!r} created" if created else f"Bucket {provider.bucket!r} ready"
        logger.info(message)
        return StoreReadiness(ready=True, backend=provider.backend_name, message=message)
