"""Ephemeral, TTL-bound handoff between processing contexts.

WHY: A scan session that finishes assembling a UR hands the result to a
conversion session that may not be listening yet. The handoff has to
survive until the receiver asks for it, but must not linger forever or be
delivered twice.

HOW: CrossContextRelay stores ``RelayPayload(data, created_at, ttl)`` per
context key in a dict guarded by a threading.Lock. take_payload() pops the
entry and compares its age against its ttl at read time. The clock is
injectable so tests can move time without sleeping.

RULES:
- set_payload() overwrites any unconsumed entry for the same context
- take_payload() is destructive: at most one caller ever gets the data
- Expiry is decided at read time (now - created_at <= ttl), never at write
- An expired payload is absence (None), logged at INFO, not an exception
- Default ttl is one hour (config.DEFAULT_RELAY_TTL_SECONDS)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ur_playground import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelayPayload:
    """One stored handoff.

    Attributes:
        data: The value handed over (any Python object).
        created_at: Clock reading when the payload was stored.
        ttl: Lifetime in seconds.
    """

    data: Any
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


class CrossContextRelay:
    """Thread-safe keyed mailbox with per-entry time-to-live."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: Dict[str, RelayPayload] = {}
        self._lock = threading.Lock()

    def set_payload(self, target_context: str, data: Any, ttl: Optional[float] = None) -> None:
        if ttl is None:
            ttl = config.DEFAULT_RELAY_TTL_SECONDS
        payload = RelayPayload(data=data, created_at=self._clock(), ttl=ttl)
        with self._lock:
            self._entries[target_context] = payload
        logger.debug("Relay payload stored for %s (ttl=%ss)", target_context, ttl)

    def take_payload(self, target_context: str) -> Optional[Any]:
        with self._lock:
            payload = self._entries.pop(target_context, None)
        if payload is None:
            return None
        if payload.is_expired(self._clock()):
            logger.info("Relay payload for %s expired", target_context)
            return None
        return payload.data

    def forward(self, target_context: str, data_type: str, data: Any, ttl: Optional[float] = None) -> str:
        """Store ``data`` under ``"<target_context>_<data_type>"``; returns the key."""
        key = "{}_{}".format(target_context, data_type)
        self.set_payload(key, data, ttl)
        return key

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
