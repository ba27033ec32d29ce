from __future__ import annotations

import json
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Optional


_CONFIG_FILE_ENV = "RELAY_CONFIG_FILE"
_DEFAULT_CONFIG_FILE = "config.json"
_ENV_PREFIX = "RELAY_"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_REQUIRED_KEYS = (
    "mqtt_broker",
    "mqtt_topic",
    "mqtt_user",
    "mqtt_password",
    "db_url",
    "db_org",
    "db_bucket",
    "db_token",
    "db_measurement",
    "write_password",
)


class ConfigurationError(RuntimeError):
    """Raised when the relay configuration is missing or malformed."""


@dataclass(frozen=True)
class Settings:
    mqtt_broker: str
    mqtt_topic: str
    mqtt_user: str
    mqtt_password: str
    db_url: str
    db_org: str
    db_bucket: str
    db_token: str
    db_measurement: str
    write_password: str
    mqtt_port: int = 1883
    mqtt_client_id: str = "telemetry-relay"
    graph_url: Optional[str] = None
    http_host: str = "0.0.0.0"
    http_port: int = 8080
    buffer_capacity: int = 10
    reconnect_delay: float = 3.0
    poll_timeout: float = 1.0
    sink_workers: int = 4
    sink_max_in_flight: int = 32
    sink_timeout_ms: int = 10_000


def _load_config_file() -> Dict[str, Any]:
    explicit = os.getenv(_CONFIG_FILE_ENV)
    path = Path(explicit.strip() if explicit and explicit.strip() else _DEFAULT_CONFIG_FILE)
    if not path.exists():
        if explicit:
            raise ConfigurationError(f"Config file {str(path)!r} not found.")
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8") or "{}")
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Config file {str(path)!r} is not valid: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {str(path)!r} must contain a JSON object.")
    return data


def _merged_source() -> Dict[str, Any]:
    source = _load_config_file()
    for key in Settings.__dataclass_fields__:
        value = os.getenv(_ENV_PREFIX + key.upper())
        if value is None:
            continue
        candidate = value.strip()
        if candidate:
            source[key] = candidate
    return source


def _read_str(source: Dict[str, Any], key: str, default: Optional[str]) -> Optional[str]:
    value = source.get(key)
    if value is None:
        return default
    candidate = str(value).strip()
    return candidate or default


def _read_positive(
    source: Dict[str, Any], key: str, default: Any, cast: Callable[[Any], Any]
) -> Any:
    value = source.get(key)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ConfigurationError(f"Config value {key!r} must be a number.")
    try:
        parsed = cast(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Config value {key!r} is not valid: {value!r}") from exc
    if parsed <= 0:
        raise ConfigurationError(f"Config value {key!r} must be positive.")
    return parsed


def _check_topic_filter(topic: str) -> str:
    # '#' only as the whole last level, '+' only as a whole level.
    levels = topic.split("/")
    valid = "\x00" not in topic and len(topic.encode("utf-8")) <= 65535
    for index, level in enumerate(levels):
        if "#" in level and (level != "#" or index != len(levels) - 1):
            valid = False
        if "+" in level and level != "+":
            valid = False
    if not valid:
        raise ConfigurationError(
            f"Config value 'mqtt_topic' is not a valid subscription filter: {topic!r}"
        )
    return topic


def load_settings() -> Settings:
    """Build settings from the optional JSON file overlaid with RELAY_* variables."""
    source = _merged_source()

    required: Dict[str, str] = {}
    missing = []
    for key in _REQUIRED_KEYS:
        value = _read_str(source, key, None)
        if value is None:
            missing.append(key)
        else:
            required[key] = value
    if missing:
        raise ConfigurationError(f"Missing required config values: {', '.join(missing)}")
    _check_topic_filter(required["mqtt_topic"])

    return Settings(
        **required,
        mqtt_port=_read_positive(source, "mqtt_port", 1883, int),
        mqtt_client_id=_read_str(source, "mqtt_client_id", "telemetry-relay") or "telemetry-relay",
        graph_url=_read_str(source, "graph_url", None),
        http_host=_read_str(source, "http_host", "0.0.0.0") or "0.0.0.0",
        http_port=_read_positive(source, "http_port", 8080, int),
        buffer_capacity=_read_positive(source, "buffer_capacity", 10, int),
        reconnect_delay=_read_positive(source, "reconnect_delay", 3.0, float),
        poll_timeout=_read_positive(source, "poll_timeout", 1.0, float),
        sink_workers=_read_positive(source, "sink_workers", 4, int),
        sink_max_in_flight=_read_positive(source, "sink_max_in_flight", 32, int),
        sink_timeout_ms=_read_positive(source, "sink_timeout_ms", 10_000, int),
    )


def read_log_level(default: str = "INFO") -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return load_settings()
