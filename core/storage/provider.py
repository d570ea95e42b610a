from __future__ import annotations

from typing import Protocol


class ObjectStoreProvider(Protocol):
    backend_name: str
    bucket: str

    def ensure_bucket(self) -> bool:
        """Create the bucket when missing. Returns ``True`` if it was created."""
        ...

    def put_object(self, *, key: str, payload: bytes, content_type: str | None = None) -> None:
        ...

    def object_exists(self, *, key: str) -> bool:
        ...

    def presigned_get_url(self, *, key: str, expires_in: int) -> str:
        ...

    def object_url(self, *, key: str) -> str:
        ...

    def delete_object(self, *, key: str) -> None:
        ...
