from __future__ import annotations

import json
import time

import pytest

from services.decoder import DecodeError, decode_reading


def _body(**overrides) -> bytes:
    payload = {"CO2": 410.5, "DP": 12.1, "H": 55.0, "T": 21.3, "pCount": 3.0}
    payload.update(overrides)
    return json.dumps(payload).encode("utf-8")


def test_decode_defaults_timestamp_to_receipt_time() -> None:
    before = time.time_ns()
    reading = decode_reading(_body())
    after = time.time_ns()

    assert reading.co2 == 410.5
    assert reading.dew_point == 12.1
    assert reading.humidity == 55.0
    assert reading.temperature == 21.3
    assert reading.particle_count == 3.0
    assert before <= reading.timestamp <= after


def test_decode_uses_supplied_timestamp() -> None:
    reading = decode_reading(_body(time=1_700_000_000_000_000_000))

    assert reading.timestamp == 1_700_000_000_000_000_000


def test_decode_accepts_lowercase_aliases() -> None:
    body = json.dumps(
        {"co2": 400.0, "dp": 10.0, "h": 40.0, "temp": 20.0, "p_count": 1.0, "time": 5}
    )

    reading = decode_reading(body)

    assert (reading.co2, reading.dew_point, reading.humidity) == (400.0, 10.0, 40.0)
    assert (reading.temperature, reading.particle_count, reading.timestamp) == (20.0, 1.0, 5)


def test_decode_accepts_integer_measurements() -> None:
    reading = decode_reading(_body(CO2=410, pCount=0))

    assert reading.co2 == 410
    assert reading.particle_count == 0


def test_decode_ignores_unknown_keys() -> None:
    reading = decode_reading(_body(node="kitchen"))

    assert reading.temperature == 21.3


@pytest.mark.parametrize("missing", ["CO2", "DP", "H", "T", "pCount"])
def test_decode_rejects_missing_measurement(missing: str) -> None:
    payload = json.loads(_body())
    del payload[missing]

    with pytest.raises(DecodeError):
        decode_reading(json.dumps(payload))


@pytest.mark.parametrize("value", ["21.3", True, None, [21.3]])
def test_decode_rejects_wrong_measurement_type(value) -> None:
    with pytest.raises(DecodeError):
        decode_reading(_body(T=value))


def test_decode_rejects_fractional_timestamp() -> None:
    with pytest.raises(DecodeError):
        decode_reading(_body(time=1.5))


@pytest.mark.parametrize("body", [b"", b"not json", b"[1, 2, 3]", b"{\"CO2\": 1"])
def test_decode_rejects_non_object_bodies(body: bytes) -> None:
    with pytest.raises(DecodeError):
        decode_reading(body)


def test_decode_accepts_largest_signed_64_bit_timestamp() -> None:
    reading = decode_reading(_body(time=2**63 - 1))

    assert reading.timestamp == 2**63 - 1
    assert str(reading).startswith("time: 2262-04-11 23:47:16.854775807 UTC")


@pytest.mark.parametrize("value", [2**63, -(2**63) - 1, 10**23])
def test_decode_rejects_timestamp_outside_signed_64_bit_range(value: int) -> None:
    with pytest.raises(DecodeError):
        decode_reading(_body(time=value))


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_decode_rejects_non_finite_measurements(literal: str) -> None:
    body = f'{{"CO2": {literal}, "DP": 12.1, "H": 55.0, "T": 21.3, "pCount": 3.0}}'

    with pytest.raises(DecodeError):
        decode_reading(body)
