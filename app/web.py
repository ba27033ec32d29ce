from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from services.relay import TelemetryRelay, build_default_relay


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))


def get_relay() -> TelemetryRelay:
    return build_default_relay()


router = APIRouter(include_in_schema=False)


@router.get("/", name="status_page", response_class=HTMLResponse)
async def status_page(
    request: Request,
    relay: TelemetryRelay = Depends(get_relay),
) -> HTMLResponse:
    writes_enabled = relay.gate.read()
    last_reading = relay.buffer.snapshot()
    return templates.TemplateResponse(
        request,
        "status.html",
        {
            "writes_enabled": "true" if writes_enabled else "false",
            "graph_url": relay.graph_url,
            "last_reading": str(last_reading) if last_reading is not None else None,
        },
    )
