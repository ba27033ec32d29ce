"""Ingestion pipeline tying the broker feed to the buffer, gate and sink."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from datastore.recent_readings import RecencyBuffer, build_default_buffer
from models.records import Reading
from services.decoder import DecodeError, decode_reading
from services.subscriber import SubscriptionLoop
from services.write_gate import WriteGate
from settings import get_settings
from storage.influx_sink import InfluxSink, build_default_sink

logger = logging.getLogger(__name__)


class TelemetryRelay:
    """Owns the shared state handles and processes inbound messages."""

    def __init__(
        self,
        buffer: RecencyBuffer,
        gate: WriteGate,
        sink: InfluxSink,
        subscriber: Optional[SubscriptionLoop] = None,
        graph_url: Optional[str] = None,
    ) -> None:
        self.buffer = buffer
        self.gate = gate
        self.sink = sink
        self.subscriber = subscriber
        self.graph_url = graph_url

    def ingest(self, payload: bytes) -> Optional[Reading]:
        """Decode one message body, buffer it and forward it when writes are enabled.

        Undecodable bodies are logged and dropped without touching any shared
        state.
        """
        try:
            reading = decode_reading(payload)
        except DecodeError as exc:
            logger.warning("mqtt: payload not recognized", extra={"reason": str(exc)})
            return None

        logger.info("%s", reading)
        self.buffer.append(reading)

        if self.gate.read():
            self.sink.dispatch(reading)
        return reading

    def start(self) -> None:
        if self.subscriber is not None:
            self.subscriber.start()

    def shutdown(self) -> None:
        if self.subscriber is not None:
            self.subscriber.stop()
        self.sink.shutdown()


@lru_cache
def build_default_relay() -> TelemetryRelay:
    """Factory that wires the relay from process settings."""
    settings = get_settings()
    relay = TelemetryRelay(
        buffer=build_default_buffer(),
        gate=WriteGate(secret=settings.write_password),
        sink=build_default_sink(),
        graph_url=settings.graph_url,
    )
    relay.subscriber = SubscriptionLoop(
        host=settings.mqtt_broker,
        port=settings.mqtt_port,
        topic=settings.mqtt_topic,
        handler=relay.ingest,
        username=settings.mqtt_user,
        password=settings.mqtt_password,
        client_id=settings.mqtt_client_id,
        reconnect_delay=settings.reconnect_delay,
        poll_timeout=settings.poll_timeout,
    )
    return relay
