from __future__ import annotations

import asyncio
from typing import Any

from core.errors import ConfigurationError, StoreUnavailable
from core.storage import ObjectStoreGateway


def parse_expiry(raw: Any) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        expiry = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("expiry must be a whole number of seconds") from exc
    if expiry <= 0:
        raise ConfigurationError("expiry must be positive")
    return expiry


async def presigned_url_for(gateway: ObjectStoreGateway, file: str | None, expiry: Any = None) -> dict[str, Any]:
    if not file:
        raise ConfigurationError('file is required, e.g. {"file": "test.docx"}')
    expiry_seconds = parse_expiry(expiry)
    if not gateway.enabled:
        raise StoreUnavailable("Object store client is not initialised; check the storage configuration")

    presigned_url = await asyncio.to_thread(gateway.presigned_url, file, expiry_seconds)
    effective_expiry = expiry_seconds or gateway.default_expiry
    return {
        "file": file,
        "presignedUrl": presigned_url,
        "expiry": effective_expiry,
        "expiryHours": effective_expiry / 3600,
    }
