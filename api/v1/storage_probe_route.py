from fastapi import APIRouter, Depends, Query

from core.container import BridgeServices, get_services
from core.errors import BridgeError, to_http_exception
from core.response_envelope import document_response
from schemas.editor_schema import PresignedUrlRequest
from services.presign_service import presigned_url_for

router = APIRouter(prefix="/test", tags=["Storage probe"])

_RESPONSE_CODES = {400: "file missing or invalid expiry", 404: "File not in bucket", 500: "Object store unavailable"}


async def _presigned_url_response(services: BridgeServices, file: str | None, expiry) -> dict:
    try:
        return await presigned_url_for(services.gateway, file, expiry)
    except BridgeError as exc:
        raise to_http_exception(exc) from exc


@router.get("/presigned-url")
@document_response(message="Presigned URL created", response_codes=_RESPONSE_CODES)
async def get_presigned_url(
    file: str | None = Query(default=None),
    expiry: str | None = Query(default=None),
    services: BridgeServices = Depends(get_services),
):
    return await _presigned_url_response(services, file, expiry)


@router.post("/presigned-url")
@document_response(message="Presigned URL created", response_codes=_RESPONSE_CODES)
async def post_presigned_url(
    payload: PresignedUrlRequest,
    services: BridgeServices = Depends(get_services),
):
    return await _presigned_url_response(services, payload.file, payload.expiry)
