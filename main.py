import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from api.v1.editor_route import router as editor_router
from api.v1.storage_probe_route import router as storage_probe_router
from core.container import BridgeServices, get_services
from core.logging_config import configure_logging
from core.response_envelope import (
    apply_response_documentation,
    error_response,
    http_exception_response,
    request_id_from_request,
)
from core.settings import Settings, get_settings
from core.validation_errors import format_validation_error_details

logger = logging.getLogger(__name__)


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        return response


async def provision_store(services: BridgeServices) -> None:
    services.readiness = await asyncio.to_thread(services.gateway.provision)
    if not services.readiness.ready:
        logger.error("Object store is not ready: %s", services.readiness.message)


@asynccontextmanager
async def lifespan(app: FastAPI):
    services: BridgeServices = app.state.services
    # Requests are served while the bucket check runs; /ready reports it.
    provisioning = asyncio.create_task(provision_store(services))
    logger.info(
        "%s started on %s:%s (editor tokens %s)",
        services.settings.service_name,
        services.settings.host,
        services.settings.port,
        "enabled" if services.token_issuer.enabled else "disabled",
    )
    yield
    provisioning.cancel()
    with suppress(asyncio.CancelledError):
        await provisioning


def create_app(settings: Settings | None = None, services: BridgeServices | None = None) -> FastAPI:
    settings = settings or (services.settings if services else get_settings())
    configure_logging(settings.log_level)

    app = FastAPI(lifespan=lifespan, title="ONLYOFFICE bridge")
    app.state.services = services or BridgeServices.build(settings)

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins) or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HTTPException)
    async def custom_http_exception_handler(request: Request, exc: HTTPException):
        return http_exception_response(exc=exc, request=request)

    @app.exception_handler(RequestValidationError)
    async def custom_validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(
            status_code=422,
            message="Validation error",
            data={"code": "VALIDATION_FAILED", "details": format_validation_error_details(exc.errors())},
            request_id=request_id_from_request(request),
        )

    @app.exception_handler(Exception)
    async def custom_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        details = None if settings.is_production else str(exc)
        return error_response(
            status_code=500,
            message="Internal Server Error",
            data={"code": "INTERNAL_ERROR", "details": details},
            request_id=request_id_from_request(request),
        )

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": settings.service_name,
        }

    @app.get("/ready", tags=["Health"])
    async def readiness_check(request: Request):
        readiness = get_services(request).readiness
        if readiness is None:
            return JSONResponse(status_code=503, content={"status": "pending", "storage": None})
        if not readiness.ready:
            return JSONResponse(status_code=503, content={"status": "not_ready", "storage": readiness.as_dict()})
        return {"status": "ready", "storage": readiness.as_dict()}

    app.include_router(editor_router, prefix=settings.api_prefix)
    app.include_router(storage_probe_router, prefix=settings.api_prefix)

    apply_response_documentation(app)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=get_settings().host, port=get_settings().port)
