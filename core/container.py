from __future__ import annotations

from dataclasses import dataclass, field

from fastapi import Request

from core.download_fetcher import DownloadFetcher
from core.settings import Settings
from core.storage import LocalDocumentStore, ObjectStoreGateway, StoreReadiness
from security.editor_jwt import EditorTokenIssuer
from services.callback_service import CallbackStateMachine
from services.editor_config_service import EditorConfigBuilder
from services.save_pipeline import SavePipeline


@dataclass
class BridgeServices:
    settings: Settings
    gateway: ObjectStoreGateway
    token_issuer: EditorTokenIssuer
    config_builder: EditorConfigBuilder
    callbacks: CallbackStateMachine
    readiness: StoreReadiness | None = field(default=None)

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        gateway: ObjectStoreGateway | None = None,
        fetcher: DownloadFetcher | None = None,
    ) -> "BridgeServices":
        gateway = gateway or ObjectStoreGateway.from_settings(settings)
        fetcher = fetcher or DownloadFetcher(
            timeout=settings.download_timeout_seconds,
            max_redirects=settings.download_max_redirects,
        )
        token_issuer = EditorTokenIssuer.from_settings(settings)
        save_pipeline = SavePipeline(fetcher, gateway, LocalDocumentStore(settings.download_path))
        return cls(
            settings=settings,
            gateway=gateway,
            token_issuer=token_issuer,
            config_builder=EditorConfigBuilder(settings, gateway, token_issuer),
            callbacks=CallbackStateMachine(
                save_pipeline,
                document_server_url=settings.document_server_url,
                editor_internal_url=settings.editor_internal_url,
            ),
        )


def get_services(request: Request) -> BridgeServices:
    return request.app.state.services
