from __future__ import annotations

import logging
from contextlib import contextmanager
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from core.errors import StoreUnavailable
from core.storage.provider import ObjectStoreProvider
from core.storage.types import StorageBackend

logger = logging.getLogger(__name__)

_MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}
_MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}

# An unreachable store must fail fast so readiness and requests report it.
CONNECT_TIMEOUT_SECONDS = 5
READ_TIMEOUT_SECONDS = 30
MAX_ATTEMPTS = 2


def _error_code(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Code", ""))


@contextmanager
def _store_errors(operation: str):
    """Report transport and service failures as ``StoreUnavailable``."""
    try:
        yield
    except (BotoCoreError, ClientError) as exc:
        raise StoreUnavailable(f"{operation} failed: {exc}") from exc


class S3StorageProvider(ObjectStoreProvider):
    """S3-compatible provider (MinIO in the reference deployment)."""

    backend_name = StorageBackend.S3.value

    def __init__(
        self,
        *,
        bucket_name: str,
        endpoint_url: str,
        access_key: str,
        secret_key: str,
        region: str | None = None,
        client=None,
    ) -> None:
        self.bucket = bucket_name
        self._endpoint_url = endpoint_url.rstrip("/")
        self._region = region
        self._client = client or boto3.client(
            "s3",
            endpoint_url=self._endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
                connect_timeout=CONNECT_TIMEOUT_SECONDS,
                read_timeout=READ_TIMEOUT_SECONDS,
                retries={"max_attempts": MAX_ATTEMPTS, "mode": "standard"},
            ),
        )

    @property
    def client(self):
        return self._client

    def ensure_bucket(self) -> bool:
        with _store_errors(f"Provisioning bucket {self.bucket}"):
            try:
                self._client.head_bucket(Bucket=self.bucket)
                return False
            except ClientError as err:
                if _error_code(err) not in _MISSING_BUCKET_CODES:
                    raise

            params: dict = {"Bucket": self.bucket}
            if self._region and self._region != "us-east-1":
                params["CreateBucketConfiguration"] = {"LocationConstraint": self._region}
            self._client.create_bucket(**params)
        logger.info("Created bucket %s", self.bucket)
        return True

    def put_object(self, *, key: str, payload: bytes, content_type: str | None = None) -> None:
        params = {"Bucket": self.bucket, "Key": key, "Body": payload}
        if content_type:
            params["ContentType"] = content_type
        with _store_errors(f"Uploading {key}"):
            self._client.put_object(**params)

    def object_exists(self, *, key: str) -> bool:
        with _store_errors(f"Checking {key}"):
            try:
                self._client.head_object(Bucket=self.bucket, Key=key)
            except ClientError as err:
                if _error_code(err) in _MISSING_OBJECT_CODES:
                    return False
                raise
        return True

    def presigned_get_url(self, *, key: str, expires_in: int) -> str:
        with _store_errors(f"Signing {key}"):
            return self._client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )

    def object_url(self, *, key: str) -> str:
        return f"{self._endpoint_url}/{self.bucket}/{quote(key, safe='/')}"

    def delete_object(self, *, key: str) -> None:
        with _store_errors(f"Deleting {key}"):
            self._client.delete_object(Bucket=self.bucket, Key=key)
