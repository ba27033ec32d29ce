"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

_NANOS_PER_SECOND = 1_000_000_000


def format_timestamp(nanos: int) -> str:
    """Render a nanosecond epoch timestamp as ``YYYY-MM-DD HH:MM:SS[.fffffffff] UTC``."""
    seconds, fraction = divmod(nanos, _NANOS_PER_SECOND)
    moment = datetime.fromtimestamp(seconds, tz=timezone.utc)
    text = moment.strftime("%Y-%m-%d %H:%M:%S")
    if fraction:
        text = f"{text}.{fraction:09d}"
    return f"{text} UTC"


@dataclass(frozen=True, slots=True)
class Reading:
    """A single validated sensor sample received from the broker."""

    co2: float
    dew_point: float
    humidity: float
    temperature: float
    particle_count: float
    timestamp: int

    def __str__(self) -> str:
        return (
            f"time: {format_timestamp(self.timestamp)}, "
            f"T: {self.temperature!r} °C, "
            f"DP: {self.dew_point!r} °C, "
            f"H: {self.humidity!r} %, "
            f"CO2: {self.co2!r} ppm, "
            f"pCount: {self.particle_count!r}"
        )
