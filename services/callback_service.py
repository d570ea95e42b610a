from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Awaitable, Callable
from urllib.parse import urlsplit, urlunsplit

from services.save_pipeline import SavePipeline

logger = logging.getLogger(__name__)


class CallbackStatus(IntEnum):
    UNRECOGNIZED = -1
    NOT_FOUND = 0
    EDITING = 1
    READY_FOR_SAVE = 2
    SAVE_ERROR = 3
    CLOSED_NO_CHANGES = 4
    FORCE_SAVE = 6
    FORCE_SAVE_ERROR = 7

    @classmethod
    def parse(cls, code: int | None) -> "CallbackStatus":
        if code is None:
            return cls.UNRECOGNIZED
        try:
            return cls(code)
        except ValueError:
            return cls.UNRECOGNIZED


class CallbackAction(str, Enum):
    LOGGED = "logged"
    SAVED = "saved"
    SAVE_SKIPPED = "save_skipped"
    SAVE_FAILED = "save_failed"


@dataclass(frozen=True)
class CallbackEvent:
    status_code: int | None
    down_url: str | None = None
    file_id: str | None = None
    url: str | None = None
    key: str | None = None
    users: list[Any] = field(default_factory=list)
    actions: list[Any] = field(default_factory=list)

    @property
    def status(self) -> CallbackStatus:
        return CallbackStatus.parse(self.status_code)


@dataclass(frozen=True)
class CallbackOutcome:
    status: CallbackStatus
    action: CallbackAction
    location: str | None = None
    error: str | None = None


Handler = Callable[[CallbackEvent], Awaitable[CallbackOutcome]]


def rewrite_editor_url(url: str, public_origin: str, internal_origin: str | None) -> str:
    """Point an editor-issued download URL at the editor's internal origin.

    Only URLs whose scheme and host match ``public_origin`` (and that sit under
    its path, if it has one) are rewritten.
    """
    if not internal_origin or not public_origin:
        return url
    source = urlsplit(url)
    public = urlsplit(public_origin)
    if (source.scheme.lower(), source.netloc.lower()) != (public.scheme.lower(), public.netloc.lower()):
        return url

    base_path = public.path.rstrip("/")
    if base_path and source.path != base_path and not source.path.startswith(base_path + "/"):
        return url

    internal = urlsplit(internal_origin)
    path = internal.path.rstrip("/") + source.path[len(base_path):]
    return urlunsplit((internal.scheme, internal.netloc, path, source.query, source.fragment))


class CallbackStateMachine:
    """Reacts to editor lifecycle callbacks.

    Holds no per-document state: everything a handler needs travels in the
    event. Only ``FORCE_SAVE`` persists content; ``READY_FOR_SAVE`` is an
    interim co-editing checkpoint and is never written.
    """

    def __init__(
        self,
        save_pipeline: SavePipeline,
        *,
        document_server_url: str = "",
        editor_internal_url: str | None = None,
    ) -> None:
        self._save_pipeline = save_pipeline
        self._document_server_url = document_server_url
        self._editor_internal_url = editor_internal_url
        self._handlers: dict[CallbackStatus, Handler] = {
            CallbackStatus.UNRECOGNIZED: self._on_unrecognized,
            CallbackStatus.NOT_FOUND: self._on_not_found,
            CallbackStatus.EDITING: self._on_editing,
            CallbackStatus.READY_FOR_SAVE: self._on_ready_for_save,
            CallbackStatus.SAVE_ERROR: self._on_save_error,
            CallbackStatus.CLOSED_NO_CHANGES: self._on_closed_no_changes,
            CallbackStatus.FORCE_SAVE: self._on_force_save,
            CallbackStatus.FORCE_SAVE_ERROR: self._on_force_save_error,
        }
        missing = set(CallbackStatus) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No callback handler for: {sorted(status.name for status in missing)}")

    async def handle(self, event: CallbackEvent) -> CallbackOutcome:
        logger.info(
            "Editor callback status=%s key=%s fileUrl=%s users=%s",
            event.status_code,
            event.key,
            event.file_id,
            event.users,
        )
        return await self._handlers[event.status](event)

    async def _on_unrecognized(self, event: CallbackEvent) -> CallbackOutcome:
        logger.warning("Unrecognized editor callback status %s", event.status_code)
        return CallbackOutcome(CallbackStatus.UNRECOGNIZED, CallbackAction.LOGGED)

    async def _on_not_found(self, event: CallbackEvent) -> CallbackOutcome:
        logger.info("Document %s not found by the editor", event.key)
        return CallbackOutcome(CallbackStatus.NOT_FOUND, CallbackAction.LOGGED)

    async def _on_editing(self, event: CallbackEvent) -> CallbackOutcome:
        logger.info("Document %s is being edited", event.key)
        return CallbackOutcome(CallbackStatus.EDITING, CallbackAction.LOGGED)

    async def _on_ready_for_save(self, event: CallbackEvent) -> CallbackOutcome:
        logger.info("Document %s reached an interim save checkpoint; not persisted", event.key)
        return CallbackOutcome(CallbackStatus.READY_FOR_SAVE, CallbackAction.LOGGED)

    async def _on_save_error(self, event: CallbackEvent) -> CallbackOutcome:
        logger.error("Editor reported a save error for %s", event.key)
        return CallbackOutcome(CallbackStatus.SAVE_ERROR, CallbackAction.LOGGED)

    async def _on_closed_no_changes(self, event: CallbackEvent) -> CallbackOutcome:
        logger.info("Document %s closed without changes", event.key)
        return CallbackOutcome(CallbackStatus.CLOSED_NO_CHANGES, CallbackAction.LOGGED)

    async def _on_force_save(self, event: CallbackEvent) -> CallbackOutcome:
        if not event.down_url:
            logger.warning("Final save for %s has no downUrl; nothing saved", event.key)
            return CallbackOutcome(CallbackStatus.FORCE_SAVE, CallbackAction.SAVE_SKIPPED)

        source_url = event.down_url
        if event.url:
            source_url = rewrite_editor_url(event.url, self._document_server_url, self._editor_internal_url)

        try:
            stored = await self._save_pipeline.save(source_url, event.file_id)
        except Exception as exc:
            # The editor has already been acknowledged; failures are for operators only.
            logger.exception("Saving document %s failed", event.file_id)
            return CallbackOutcome(CallbackStatus.FORCE_SAVE, CallbackAction.SAVE_FAILED, error=str(exc))

        logger.info("Saved document %s to %s", event.file_id, stored.location)
        return CallbackOutcome(CallbackStatus.FORCE_SAVE, CallbackAction.SAVED, location=stored.location)

    async def _on_force_save_error(self, event: CallbackEvent) -> CallbackOutcome:
        logger.error("Editor reported a failed final save for %s", event.key)
        return CallbackOutcome(CallbackStatus.FORCE_SAVE_ERROR, CallbackAction.LOGGED)
