"""Observer registration for state-machine transitions.

WHY: Assembly progress, generated fragments and animation frames have to
reach whatever is displaying them (a terminal, a GUI, a test) without the
core knowing who that is.

HOW: EventEmitter keeps a list of callbacks per event name. Components
subclass it and call ``_emit(event, payload)`` after each transition.

RULES:
- Callbacks run synchronously, in registration order
- subscribe() returns an unsubscribe callable
- A failing observer is logged and does not break the state machine
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Observer = Callable[[str, Any], None]


class EventEmitter:
    """Minimal publish/subscribe mixin."""

    def __init__(self) -> None:
        self._observers: Dict[str, List[Observer]] = {}

    def subscribe(self, event: str, callback: Observer) -> Callable[[], None]:
        """Register ``callback(event, payload)``; ``"*"`` receives every event."""
        self._observers.setdefault(event, []).append(callback)

        def _unsubscribe() -> None:
            callbacks = self._observers.get(event, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return _unsubscribe

    def _emit(self, event: str, payload: Any = None) -> None:
        for callback in list(self._observers.get(event, [])) + list(self._observers.get("*", [])):
            try:
                callback(event, payload)
            except Exception:
                logger.exception("Observer for %s failed", event)
