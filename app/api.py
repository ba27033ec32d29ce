"""Control command accepted on the root path."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from app.schemas import WriteGateCommand
from services.relay import TelemetryRelay, build_default_relay
from services.write_gate import GateUpdate

MAX_COMMAND_BYTES = 2048

router = APIRouter(include_in_schema=False)


def get_relay() -> TelemetryRelay:
    return build_default_relay()


def _declared_length(request: Request) -> Optional[int]:
    value = request.headers.get("content-length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return MAX_COMMAND_BYTES + 1


def _too_large() -> PlainTextResponse:
    return PlainTextResponse(
        "Body too large", status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    )


@router.post("/", response_class=PlainTextResponse)
async def set_writes_enabled(
    request: Request,
    relay: TelemetryRelay = Depends(get_relay),
) -> PlainTextResponse:
    declared = _declared_length(request)
    if declared is not None and declared > MAX_COMMAND_BYTES:
        return _too_large()

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > MAX_COMMAND_BYTES:
            return _too_large()

    # Malformed commands and wrong passwords still answer 200.
    try:
        command = WriteGateCommand.model_validate_json(bytes(body))
    except ValidationError:
        return PlainTextResponse("Invalid POST data")

    if relay.gate.set(command.writes_enabled, command.password) is GateUpdate.rejected:
        return PlainTextResponse("Wrong password")
    return PlainTextResponse(f"Writes enabled: {'true' if command.writes_enabled else 'false'}")
