"""Best-effort forwarding of readings to InfluxDB."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from threading import BoundedSemaphore, Condition, Lock
from typing import Any, Dict, Optional, Protocol, Set

from influxdb_client import InfluxDBClient, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from models.records import Reading
from settings import get_settings

logger = logging.getLogger(__name__)


def build_record(reading: Reading, measurement: str) -> Dict[str, Any]:
    """Shape a reading as an influxdb-client dictionary record."""
    return {
        "measurement": measurement,
        "fields": {
            "T": reading.temperature,
            "H": reading.humidity,
            "DP": reading.dew_point,
            "CO2": reading.co2,
            "pCount": reading.particle_count,
        },
        "time": reading.timestamp,
    }


class PointWriter(Protocol):
    def write(self, record: Dict[str, Any]) -> None: ...

    def close(self) -> None: ...


class InfluxPointWriter:
    """Performs one synchronous write per record to a bucket."""

    def __init__(
        self,
        url: str,
        token: str,
        org: str,
        bucket: str,
        timeout_ms: int = 10_000,
    ) -> None:
        self.org = org
        self.bucket = bucket
        self._client = InfluxDBClient(url=url, token=token, org=org, timeout=timeout_ms)
        self._write_api = self._client.write_api(write_options=SYNCHRONOUS)

    def write(self, record: Dict[str, Any]) -> None:
        self._write_api.write(
            bucket=self.bucket,
            org=self.org,
            record=record,
            write_precision=WritePrecision.NS,
        )

    def close(self) -> None:
        self._write_api.close()
        self._client.close()


class InfluxSink:
    """Dispatches writes on a bounded pool without blocking the caller.

    At most ``max_in_flight`` writes may be queued or running at once; further
    readings are dropped until a slot frees up.
    """

    def __init__(
        self,
        writer: PointWriter,
        measurement: str,
        workers: int = 4,
        max_in_flight: int = 32,
    ) -> None:
        self.writer = writer
        self.measurement = measurement
        self.max_in_flight = max_in_flight
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="influx-write")
        self._slots = BoundedSemaphore(max_in_flight)
        self._futures: Set[Future[None]] = set()
        self._futures_lock = Lock()
        self._idle = Condition(self._futures_lock)

    @property
    def in_flight(self) -> int:
        with self._futures_lock:
            return len(self._futures)

    def dispatch(self, reading: Reading) -> Optional[Future[None]]:
        """Schedule one write for ``reading`` and return immediately."""
        if not self._slots.acquire(blocking=False):
            logger.warning(
                "Dropping database write; too many writes in flight",
                extra={"in_flight": self.max_in_flight},
            )
            return None

        record = build_record(reading, self.measurement)
        try:
            future = self.executor.submit(self._write, record)
        except RuntimeError:
            self._slots.release()
            logger.warning("Dropping database write; sink is shut down")
            return None

        with self._futures_lock:
            self._futures.add(future)
        future.add_done_callback(self._release)
        return future

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every dispatched write has finished."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._futures, timeout=timeout)

    def shutdown(self, drain_timeout: Optional[float] = 2.0) -> None:
        """Cancel queued writes, give running ones ``drain_timeout`` seconds, then close."""
        self.executor.shutdown(wait=False, cancel_futures=True)
        if not self.wait_idle(timeout=drain_timeout):
            logger.warning(
                "Closing database client with writes still running",
                extra={"in_flight": self.in_flight},
            )
        self.writer.close()

    def _release(self, future: Future[None]) -> None:
        self._slots.release()
        with self._idle:
            self._futures.discard(future)
            if not self._futures:
                self._idle.notify_all()

    def _write(self, record: Dict[str, Any]) -> None:
        try:
            self.writer.write(record)
        except Exception as exc:
            logger.error(
                "Database write failed: %s",
                exc,
                extra={"measurement": self.measurement},
            )
            return
        logger.debug("Database write ok", extra={"measurement": self.measurement})


def build_default_sink() -> InfluxSink:
    settings = get_settings()
    writer = InfluxPointWriter(
        url=settings.db_url,
        token=settings.db_token,
        org=settings.db_org,
        bucket=settings.db_bucket,
        timeout_ms=settings.sink_timeout_ms,
    )
    return InfluxSink(
        writer=writer,
        measurement=settings.db_measurement,
        workers=settings.sink_workers,
        max_in_flight=settings.sink_max_in_flight,
    )
