from __future__ import annotations


class HostileError(Exception):
    """Base class for errors raised outside rule evaluation itself."""


class UnknownSimulation(HostileError, LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"unknown simulation: {name!r}")
        self.name = name


class UnknownSession(HostileError, LookupError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"session not found: {session_id!r}")
        self.session_id = session_id


class InvalidAction(HostileError, ValueError):
    """A simulation received input it cannot turn into engine state."""
