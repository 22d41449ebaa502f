"""Change notifier: broadcast "this setting changed" to subscribers.

Each :class:`~blphttp.config.gateway_config.GatewayConfig` owns one
notifier, so independent instances never see each other's events.

Usage::

    unsubscribe = notifier.subscribe(lambda name: listener.reload_tls())
    notifier.emit("https.crl")
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from blphttp.config.events import CHANGE_EVENTS

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)


class ChangeNotifier:
    """Synchronous fan-out of change events.

    Subscribers are called in registration order on the emitting thread.
    A subscriber that raises is logged and skipped; the remaining
    subscribers are still notified.
    """

    def __init__(self) -> None:
        self._subscribers: list[Callable[[str], None]] = []
        self._lock = threading.Lock()
        self._emit_count = 0

    @property
    def emit_count(self) -> int:
        """Total number of events emitted so far."""
        with self._lock:
            return self._emit_count

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Register *callback* and return a function that removes it."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def emit(self, setting: str) -> None:
        """Deliver *setting* to every current subscriber."""
        if setting not in CHANGE_EVENTS:
            msg = f"Unknown change event '{setting}'. Known events: {sorted(CHANGE_EVENTS)}"
            raise ValueError(msg)

        with self._lock:
            subscribers = list(self._subscribers)
            self._emit_count += 1

        log.info("Configuration changed: %s (%d subscriber(s))", setting, len(subscribers))
        for callback in subscribers:
            try:
                callback(setting)
            except Exception:
                log.exception(
                    "Change subscriber %r failed for '%s'",
                    callback,
                    setting,
                )
