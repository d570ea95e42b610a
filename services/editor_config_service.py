from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Mapping
from urllib.parse import urlencode
from uuid import uuid4

from core.errors import ConfigurationError
from core.settings import CUSTOMIZATION_FIELDS, PERMISSION_FIELDS, CustomizationDefaults, PermissionDefaults, Settings
from core.storage import ObjectStoreGateway
from schemas.editor_schema import PermissionOverrides
from security.editor_jwt import EditorTokenIssuer

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "docx"
DEFAULT_DOCUMENT_TYPE = "word"
DEFAULT_MODE = "view"
EDIT_MODE = "edit"
ANONYMOUS_USER_ID = "anonymous"
ANONYMOUS_USER_NAME = "Anonymous"

_CUSTOMIZATION_FALLBACKS = {"comments": True, "feedback": False, "forcesave": True, "submitForm": True}


@dataclass(frozen=True)
class EditorConfigResult:
    config: dict[str, Any]
    token: str | None
    document_server_url: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "config": self.config,
            "token": self.token,
            "documentServerUrl": self.document_server_url,
        }


def file_extension(file_id: str) -> str:
    return PurePosixPath(file_id).suffix.lower().lstrip(".") or DEFAULT_EXTENSION


def document_type_for(extension: str, file_types: Mapping[str, str]) -> str:
    return file_types.get(extension, DEFAULT_DOCUMENT_TYPE)


def generate_session_key() -> str:
    return f"k{int(time.time() * 1000)}{uuid4().hex[:12]}"


def resolve_permissions(
    overrides: PermissionOverrides | None,
    defaults: PermissionDefaults,
    mode: str,
) -> dict[str, bool]:
    """Request value, then configured default, then fallback.

    The fallback is ``True`` for everything except ``edit``, which is only
    granted by default in edit mode.
    """
    resolved: dict[str, bool] = {}
    for name in PERMISSION_FIELDS:
        requested = getattr(overrides, name) if overrides is not None else None
        configured = getattr(defaults, name)
        fallback = mode == EDIT_MODE if name == "edit" else True
        if requested is not None:
            resolved[name] = requested
        elif configured is not None:
            resolved[name] = configured
        else:
            resolved[name] = fallback
    return resolved


def resolve_customization(defaults: CustomizationDefaults) -> dict[str, bool]:
    resolved: dict[str, bool] = {}
    for name in CUSTOMIZATION_FIELDS:
        configured = getattr(defaults, name)
        resolved[name] = _CUSTOMIZATION_FALLBACKS[name] if configured is None else configured
    return resolved


def build_callback_url(base_url: str, document_url: str, file_id: str) -> str:
    query = urlencode({"downUrl": document_url, "fileUrl": file_id})
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{query}"


class EditorConfigBuilder:
    def __init__(self, settings: Settings, gateway: ObjectStoreGateway, token_issuer: EditorTokenIssuer) -> None:
        self._settings = settings
        self._gateway = gateway
        self._token_issuer = token_issuer

    async def resolve_document_url(self, file_id: str) -> str:
        if not self._gateway.enabled:
            return f"{self._settings.document_server_url}/{self._settings.minio_bucket}/{file_id}"
        if self._settings.use_presigned_url:
            url = await asyncio.to_thread(self._gateway.presigned_url, file_id)
            logger.info("Using presigned URL for %s", file_id)
            return url
        logger.info("Using direct object URL for %s", file_id)
        return self._gateway.direct_url(file_id)

    async def build(
        self,
        file_id: str | None,
        user_id: str | None = None,
        user_name: str | None = None,
        mode: str | None = None,
        permission_overrides: PermissionOverrides | None = None,
    ) -> EditorConfigResult:
        if not file_id or not file_id.strip():
            raise ConfigurationError("fileId is required")

        mode = mode or DEFAULT_MODE
        extension = file_extension(file_id)
        document_url = await self.resolve_document_url(file_id)
        callback_url = build_callback_url(self._settings.callback_url, document_url, file_id)

        config: dict[str, Any] = {
            "document": {
                "height": "100%",
                "width": "100%",
                "type": "desktop",
                "fileType": extension,
                "key": generate_session_key(),
                "title": PurePosixPath(file_id).name,
                "url": document_url,
                "permissions": resolve_permissions(permission_overrides, self._settings.default_permissions, mode),
            },
            "documentType": document_type_for(extension, self._settings.file_types),
            "editorConfig": {
                "mode": mode,
                "lang": self._settings.default_lang,
                "callbackUrl": callback_url,
                "user": {
                    "id": user_id or ANONYMOUS_USER_ID,
                    "name": user_name or ANONYMOUS_USER_NAME,
                },
                "customization": resolve_customization(self._settings.default_customization),
            },
        }

        token = self._token_issuer.issue(config)
        if token is not None:
            config["token"] = token

        return EditorConfigResult(
            config=config,
            token=token,
            document_server_url=self._settings.document_server_url,
        )
