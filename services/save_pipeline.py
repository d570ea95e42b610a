from __future__ import annotations

import asyncio
import logging
import mimetypes
import time
from pathlib import PurePosixPath

from core.download_fetcher import DownloadFetcher
from core.storage import LocalDocumentStore, ObjectStoreGateway, StorageBackend, StoredObject

logger = logging.getLogger(__name__)


def object_key_for(file_id: str | None) -> str:
    """Base name of ``file_id``, or a timestamped name when there is none."""
    name = PurePosixPath(file_id.replace("\\", "/")).name if file_id else ""
    if name in {"", ".", ".."}:
        return f"document_{int(time.time() * 1000)}.docx"
    return name


class SavePipeline:
    def __init__(
        self,
        fetcher: DownloadFetcher,
        gateway: ObjectStoreGateway,
        local_store: LocalDocumentStore,
    ) -> None:
        self._fetcher = fetcher
        self._gateway = gateway
        self._local_store = local_store

    async def save(self, download_url: str, file_id: str | None) -> StoredObject:
        object_key = object_key_for(file_id)
        payload = await self._fetcher.fetch(download_url)
        content_type = mimetypes.guess_type(object_key)[0]

        if self._gateway.enabled:
            location = await asyncio.to_thread(self._gateway.put, object_key, payload, content_type)
            backend = StorageBackend.S3
        else:
            path = await asyncio.to_thread(self._local_store.save_bytes, object_key=object_key, payload=payload)
            location = str(path)
            backend = StorageBackend.LOCAL
            logger.info("Saved %s to local disk at %s", object_key, location)

        return StoredObject(
            key=object_key,
            backend=backend,
            location=location,
            size=len(payload),
            content_type=content_type,
        )
