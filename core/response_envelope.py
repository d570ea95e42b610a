from __future__ import annotations

import inspect
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.responses import Response

_ENVELOPE_ATTR = "__envelope_doc__"


@dataclass(frozen=True)
class EnvelopeDoc:
    message: str
    status_code: int
    response_codes: dict[int, str]


def _envelope(success: bool, message: str, data: Any, request_id: str | None) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": success, "message": message, "data": data}
    if request_id:
        payload["requestId"] = request_id
    return payload


def success_payload(data: Any, message: str = "Success", *, request_id: str | None = None) -> dict[str, Any]:
    return _envelope(True, message, data, request_id)


def error_payload(message: str, data: Any = None, *, request_id: str | None = None) -> dict[str, Any]:
    return _envelope(False, message, data, request_id)


def error_response(
    *,
    status_code: int,
    message: str,
    data: Any = None,
    headers: dict[str, str] | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content=jsonable_encoder(error_payload(message, data, request_id=request_id)),
    )


def _unpack_detail(detail: Any) -> tuple[str, dict[str, Any]]:
    """Split an ``HTTPException.detail`` into envelope message and data.

    ``AppException`` details carry ``message``/``code``/``details``; plain
    string details (framework 404s, 405s) become the message.
    """
    if isinstance(detail, dict) and isinstance(detail.get("message"), str):
        return detail["message"], {"code": detail.get("code", "HTTP_ERROR"), "details": detail.get("details")}
    if isinstance(detail, str) and detail.strip():
        return detail, {"code": "HTTP_ERROR", "details": None}
    return "Request failed", {"code": "HTTP_ERROR", "details": detail}


def request_id_from_request(request: Request | None) -> str | None:
    if request is None:
        return None
    return getattr(request.state, "request_id", None)


def http_exception_response(exc: HTTPException, request: Request | None = None) -> JSONResponse:
    message, data = _unpack_detail(exc.detail)
    return error_response(
        status_code=exc.status_code,
        message=message,
        data=data,
        headers=exc.headers,
        request_id=request_id_from_request(request),
    )


def document_response(
    *,
    message: str = "Success",
    status_code: int = status.HTTP_200_OK,
    response_codes: dict[int, str] | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Wrap a route's return value in the success envelope and record its error codes."""

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Response:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, Response):
                return result

            request = next((value for value in kwargs.values() if isinstance(value, Request)), None)
            return JSONResponse(
                status_code=status_code,
                content=jsonable_encoder(
                    success_payload(result, message, request_id=request_id_from_request(request))
                ),
            )

        setattr(wrapper, _ENVELOPE_ATTR, EnvelopeDoc(message, status_code, dict(response_codes or {})))
        return wrapper

    return decorator


def apply_response_documentation(app: FastAPI) -> None:
    """Publish the envelope shape and declared error codes in the OpenAPI schema."""
    for route in app.routes:
        if not isinstance(route, APIRoute):
            continue
        doc = getattr(route.endpoint, _ENVELOPE_ATTR, None)
        if not isinstance(doc, EnvelopeDoc):
            continue

        responses = dict(route.responses or {})
        responses[doc.status_code] = {
            "description": "Successful response",
            "content": {"application/json": {"example": success_payload(None, doc.message)}},
        }
        for code, description in doc.response_codes.items():
            responses.setdefault(code, {"description": description})
        route.status_code = doc.status_code
        route.responses = responses

    app.openapi_schema = None
