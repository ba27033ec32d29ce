from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, Response, status
from fastapi.exception_handlers import http_exception_handler
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import router
from app.web import router as web_router
from logging_config import configure_logging
from services.relay import build_default_relay


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    relay = build_default_relay()
    relay.start()
    try:
        yield
    finally:
        relay.shutdown()
        build_default_relay.cache_clear()


async def not_found_handler(request: Request, exc: StarletteHTTPException) -> Response:
    # Unknown paths and unsupported methods on known paths both answer 404.
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return await http_exception_handler(request, exc)


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Telemetry Relay",
        description="MQTT to InfluxDB relay with a password-gated write switch.",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.add_exception_handler(StarletteHTTPException, not_found_handler)
    app.include_router(router)
    app.include_router(web_router)
    return app


app = create_app()
