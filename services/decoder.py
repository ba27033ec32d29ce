"""Structural validation of broker message bodies."""

from __future__ import annotations

from pydantic import ValidationError

from app.schemas import ReadingPayload
from models.records import Reading


class DecodeError(ValueError):
    """The message body is not a recognisable reading."""


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "body"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def decode_reading(payload: bytes | str) -> Reading:
    """Parse a JSON message body into a :class:`Reading`.

    The whole message is rejected when any measurement is missing or has the
    wrong JSON type. A missing ``time`` is replaced by the receipt time.
    """
    try:
        parsed = ReadingPayload.model_validate_json(payload)
    except ValidationError as exc:
        raise DecodeError(_describe(exc)) from exc

    return Reading(
        co2=parsed.co2,
        dew_point=parsed.dew_point,
        humidity=parsed.humidity,
        temperature=parsed.temperature,
        particle_count=parsed.particle_count,
        timestamp=parsed.time,
    )
