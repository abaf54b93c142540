"""LRU memo of conversion results.

WHY: Interactive use re-converts the same input over and over (switching
target format back and forth, re-rendering after a style toggle). Fountain
assembly and registry decoding are not free, so repeated requests should
come back from memory.

HOW: ConversionCache is an OrderedDict keyed by
(raw_input, source_format, target_format, options_digest). A hit moves the
entry to the end; an insert past capacity pops the oldest entry. A
threading.Lock guards every access so the cache can be shared by parallel
workers.

RULES:
- Default capacity is 120 entries (config.CACHE_CAPACITY)
- Only successful conversions are stored (the orchestrator enforces this)
- options_digest() is stable for equal options regardless of key order
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, Hashable, Optional, Tuple

from ur_playground import config

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str, str, str]


def options_digest(options: Optional[Dict[str, Any]]) -> str:
    """Stable short hash of a conversion options mapping."""
    encoded = json.dumps(options or {}, sort_keys=True, default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()[:16]


def make_key(raw_input: str, source_format: str, target_format: str, options: Optional[Dict[str, Any]]) -> CacheKey:
    return (raw_input, source_format, target_format, options_digest(options))


class ConversionCache:
    """Thread-safe fixed-capacity LRU cache."""

    def __init__(self, capacity: int = config.CACHE_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1")
        self.capacity = capacity
        self._entries: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            if key not in self._entries:
                logger.debug("Cache miss")
                return None
            self._entries.move_to_end(key)
            logger.debug("Cache hit")
            return self._entries[key]

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            self._entries[key] = value
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
