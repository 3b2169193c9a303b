from __future__ import annotations

from typing import Any, Callable, TypeAlias

import structlog

log = structlog.get_logger()

Listener: TypeAlias = Callable[[str, Any], None]

# Engine event names
EVALUATE = "evaluate"


class ListenerBus:
    """
    Deterministic synchronous listener bus.

    - publish(event, payload) calls listeners on the caller's stack
    - dispatch order is subscription order
    - failures are fail-fast (a raising listener aborts dispatch and propagates)

    Listeners must not publish back into the engine that owns this bus.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)
        log.debug("bus.subscribed", listener=getattr(listener, "__name__", "listener"))

    def publish(self, event: str, payload: Any) -> None:
        # Snapshot so listeners subscribing during dispatch only see later events.
        listeners = tuple(self._listeners)
        log.debug("bus.publish", event_type=event, listeners=len(listeners))
        for listener in listeners:
            listener(event, payload)
