from __future__ import annotations

import secrets
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Optional, TypeVar

import structlog

from hostile.core.config.settings import settings
from hostile.core.errors import UnknownSession
from hostile.core.logging.setup import bind_context, clear_context
from hostile.simulations.base import Simulation
from hostile.simulations.catalog import create_simulation

log = structlog.get_logger()

T = TypeVar("T")


@dataclass(slots=True)
class SessionHandle:
    """
    One live simulation session in this process.

    lock serializes every engine call for this session: the engine is not
    reentrant and must never see two evaluations in flight.
    """

    session_id: str
    simulation: Simulation
    seed: Optional[int]
    created_at_utc: datetime
    lock: Lock = field(default_factory=Lock)

    def run(self, fn: Callable[[Simulation], T]) -> T:
        with self.lock:
            bind_context(session_id=self.session_id, simulation=self.simulation.name)
            try:
                return fn(self.simulation)
            finally:
                clear_context()


def new_session_id(now: datetime) -> str:
    # Timestamp + entropy: sortable and collision-safe within one second
    return f"{now.strftime('%Y%m%dT%H%M%SZ')}_{secrets.token_hex(4)}"


class SessionRegistry:
    """
    Thread-safe in-memory registry of live sessions.

    Nothing survives a restart. Beyond max_sessions the least recently
    created session is evicted.
    """

    def __init__(self, *, max_sessions: int) -> None:
        if max_sessions <= 0:
            raise ValueError("max_sessions must be > 0")
        self._max = max_sessions
        self._lock = Lock()
        self._sessions: OrderedDict[str, SessionHandle] = OrderedDict()

    def create(self, *, simulation: str, seed: Optional[int] = None) -> SessionHandle:
        sim = create_simulation(simulation, seed=seed)
        now = datetime.now(timezone.utc)
        handle = SessionHandle(
            session_id=new_session_id(now),
            simulation=sim,
            seed=seed,
            created_at_utc=now,
        )

        with self._lock:
            self._sessions[handle.session_id] = handle
            while len(self._sessions) > self._max:
                evicted, _ = self._sessions.popitem(last=False)
                log.info("session.evicted", session_id=evicted)

        log.info("session.created", session_id=handle.session_id, simulation=simulation, seed=seed)
        return handle

    def get(self, session_id: str) -> SessionHandle:
        with self._lock:
            handle = self._sessions.get(session_id)
        if handle is None:
            raise UnknownSession(session_id)
        return handle

    def remove(self, session_id: str) -> None:
        with self._lock:
            handle = self._sessions.pop(session_id, None)
        if handle is None:
            raise UnknownSession(session_id)
        log.info("session.removed", session_id=session_id)

    def list(self) -> list[SessionHandle]:
        with self._lock:
            items = list(self._sessions.values())
        items.sort(key=lambda h: h.created_at_utc, reverse=True)
        return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


# Process-wide registry (single-process dev server)
registry = SessionRegistry(max_sessions=settings.max_sessions)
