"""MQTT subscription loop with fixed-delay reconnect."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Optional

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)

MessageHandler = Callable[[bytes], Any]
ClientFactory = Callable[[str], Any]


class LinkState(str, Enum):
    disconnected = "disconnected"
    connected = "connected"
    subscribed = "subscribed"


class TransportError(RuntimeError):
    """The broker connection was lost or refused."""


def default_client_factory(client_id: str) -> mqtt.Client:
    return mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv311,
    )


class SubscriptionLoop:
    """Owns the broker connection and feeds every message on ``topic`` to ``handler``.

    The loop runs on its own thread. Each cycle connects, subscribes once the
    broker acknowledges the connection and polls until the transport fails;
    after a failure it waits ``reconnect_delay`` seconds and starts over.
    """

    def __init__(
        self,
        host: str,
        topic: str,
        handler: MessageHandler,
        port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "telemetry-relay",
        reconnect_delay: float = 3.0,
        poll_timeout: float = 1.0,
        keepalive: int = 60,
        client_factory: ClientFactory = default_client_factory,
    ) -> None:
        self.host = host
        self.port = port
        self.topic = topic
        self.handler = handler
        self.username = username
        self.password = password
        self.client_id = client_id
        self.reconnect_delay = reconnect_delay
        self.poll_timeout = poll_timeout
        self.keepalive = keepalive
        self._client_factory = client_factory
        self._state = LinkState.disconnected
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.connect_attempts = 0

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run, name="mqtt-subscription", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def run(self) -> None:
        logger.info(
            "Starting subscription loop for %s:%d", self.host, self.port,
            extra={"topic": self.topic},
        )
        while not self._stop.is_set():
            try:
                self.run_cycle()
            except (OSError, TransportError) as exc:
                logger.warning("MQTT transport error: %s", exc)
            except Exception:
                logger.exception("Unexpected error in MQTT session")
            self._set_state(LinkState.disconnected)
            if self._stop.is_set():
                break
            logger.info(
                "Waiting before MQTT reconnect", extra={"delay": self.reconnect_delay}
            )
            self._stop.wait(self.reconnect_delay)
        logger.info("Subscription loop stopped")

    def run_cycle(self) -> None:
        """Connect once and poll until the transport fails or a stop is requested."""
        client = self._client_factory(self.client_id)
        client.on_connect = self._on_connect
        client.on_subscribe = self._on_subscribe
        client.on_message = self._on_message
        client.on_disconnect = self._on_disconnect
        if self.username:
            client.username_pw_set(self.username, self.password)

        self.connect_attempts += 1
        client.connect(self.host, self.port, keepalive=self.keepalive)
        try:
            while not self._stop.is_set():
                rc = client.loop(timeout=self.poll_timeout)
                if rc != mqtt.MQTT_ERR_SUCCESS:
                    raise TransportError(mqtt.error_string(rc))
        finally:
            client.disconnect()

    def _set_state(self, state: LinkState) -> None:
        if state is not self._state:
            logger.debug("MQTT link state changed", extra={"state": state.value})
        self._state = state

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code.is_failure:
            logger.error("MQTT connection refused", extra={"reason": str(reason_code)})
            client.disconnect()
            return

        self._set_state(LinkState.connected)
        logger.info("mqtt: Connected")
        result, _mid = client.subscribe(self.topic, qos=0)
        if result != mqtt.MQTT_ERR_SUCCESS:
            logger.error(
                "MQTT subscribe request failed",
                extra={"topic": self.topic, "reason": mqtt.error_string(result)},
            )

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties=None) -> None:
        failures = [code for code in reason_code_list if code.is_failure]
        if failures:
            logger.error(
                "MQTT subscription rejected",
                extra={"topic": self.topic, "reason": ", ".join(str(code) for code in failures)},
            )
            return
        self._set_state(LinkState.subscribed)
        logger.info("mqtt: Subscribed", extra={"topic": self.topic})

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self._set_state(LinkState.disconnected)
        logger.warning("MQTT disconnected", extra={"reason": str(reason_code)})

    def _on_message(self, client, userdata, message) -> None:
        if not mqtt.topic_matches_sub(self.topic, message.topic):
            logger.debug("Ignoring message on foreign topic", extra={"topic": message.topic})
            return
        try:
            self.handler(message.payload)
        except Exception:
            logger.exception("Error handling MQTT message", extra={"topic": message.topic})
