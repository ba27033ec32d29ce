"""Password-protected switch controlling database writes."""

from __future__ import annotations

import hmac
import logging
from enum import Enum
from threading import Lock

logger = logging.getLogger(__name__)


class GateUpdate(str, Enum):
    """Outcome of a request to change the gate."""

    applied = "applied"
    rejected = "rejected"


class WriteGate:
    """Shared flag consulted before every database write."""

    def __init__(self, secret: str, enabled: bool = True) -> None:
        self._secret = secret.encode("utf-8")
        self._enabled = enabled
        self._lock = Lock()

    def read(self) -> bool:
        with self._lock:
            return self._enabled

    def set(self, enabled: bool, supplied_secret: str) -> GateUpdate:
        """Change the flag when ``supplied_secret`` matches the configured one."""
        if not hmac.compare_digest(supplied_secret.encode("utf-8"), self._secret):
            logger.warning("Rejected write gate change: wrong password")
            return GateUpdate.rejected

        with self._lock:
            self._enabled = enabled
        logger.info("Database writes toggled", extra={"writes_enabled": enabled})
        return GateUpdate.applied
