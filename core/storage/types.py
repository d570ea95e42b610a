from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class StorageBackend(str, Enum):
    LOCAL = "local"
    S3 = "s3"


@dataclass(frozen=True)
class StoredObject:
    key: str
    backend: StorageBackend
    location: str
    size: int
    content_type: str | None = None
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@dataclass(frozen=True)
class StoreReadiness:
    ready: bool
    backend: str
    message: str
    checked_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def as_dict(self) -> dict[str, str | bool]:
        return {
            "ready": self.ready,
            "backend": self.backend,
            "message": self.message,
            "checked_at": self.checked_at,
        }
