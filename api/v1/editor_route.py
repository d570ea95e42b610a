
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import JSONResponse

from core.container import BridgeServices, get_services
from core.errors import BridgeError, to_http_exception
from core.response_envelope import document_response
from schemas.editor_schema import CallbackRequest, EditorConfigRequest
from services.callback_service import CallbackEvent


router = APIRouter(tags=["Editor"])


@router.post("/config")
@document_response(
    message="Editor configuration created",
    response_codes={400: "fileId missing", 404: "Document not found", 500: "Object store unavailable"},
)
async def create_editor_config(
    payload: EditorConfigRequest,
    services: BridgeServices = Depends(get_services),
):
    try:
        result = await services.config_builder.build(
            file_id=payload.file_id,
            user_id=payload.user_id,
            user_name=payload.user_name,
            mode=payload.mode,
            permission_overrides=payload.permissions,
        )
    except BridgeError as exc:
        raise to_http_exception(exc) from exc
    return result.as_dict()


@router.post("/callback")
async def receive_editor_callback(
    payload: CallbackRequest,
    background_tasks: BackgroundTasks,
    down_url: str | None = Query(default=None, alias="downUrl"),
    file_url: str | None = Query(default=None, alias="fileUrl"),
    services: BridgeServices = Depends(get_services),
):
    event = CallbackEvent(
        status_code=payload.status,
        down_url=down_url,
        file_id=file_url,
        url=payload.url,
        key=payload.key,
        users=payload.users or [],
        actions=payload.actions or [],
    )
    # The editor expects an immediate acknowledgment; handling runs afterwards.
    background_tasks.add_task(services.callbacks.handle, event)
    return JSONResponse({"error": 0})
