"""Pydantic schemas for inbound broker payloads and control commands."""

from __future__ import annotations

from time import time_ns

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ReadingPayload(BaseModel):
    """JSON body published by the sensor node."""

    model_config = ConfigDict(strict=True, frozen=True, extra="ignore", allow_inf_nan=False)

    co2: float = Field(..., validation_alias=AliasChoices("CO2", "co2"))
    dew_point: float = Field(..., validation_alias=AliasChoices("DP", "dp"))
    humidity: float = Field(..., validation_alias=AliasChoices("H", "h"))
    temperature: float = Field(..., validation_alias=AliasChoices("T", "t", "temp"))
    particle_count: float = Field(
        ..., validation_alias=AliasChoices("pCount", "pcount", "p_count")
    )
    time: int = Field(
        default_factory=time_ns,
        ge=-(2**63),
        le=2**63 - 1,
        description="Nanoseconds since the epoch; receipt time when omitted.",
    )


class WriteGateCommand(BaseModel):
    """Body of ``POST /`` toggling database writes."""

    model_config = ConfigDict(strict=True)

    writes_enabled: bool
    password: str
