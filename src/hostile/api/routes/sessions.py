from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from hostile.core.config.settings import settings
from hostile.core.errors import InvalidAction, UnknownSession, UnknownSimulation
from hostile.core.session.registry import SessionHandle, registry
from hostile.evaluation.report import build_report
from hostile.simulations.base import Outcome, Simulation
from hostile.simulations.catalog import available

log = structlog.get_logger()

router = APIRouter(tags=["sessions"])


# =========================
# Schemas
# =========================

class SimulationsResponse(BaseModel):
    simulations: list[str]


class CreateSessionRequest(BaseModel):
    simulation: str = Field(..., description="Simulation name, see GET /simulations")
    seed: int | None = Field(default=None, description="Optional RNG seed override")


class CreateSessionResponse(BaseModel):
    session_id: str
    simulation: str


class ActionRequest(BaseModel):
    input: dict[str, Any] = Field(default_factory=dict, description="Simulation-specific user input")


class ActionResponse(BaseModel):
    session_id: str
    action: str
    attempt_number: int
    evaluated: bool
    passed: bool
    failed_rule_ids: list[str]
    messages: list[str]
    finished: bool
    data: dict[str, Any]


class SessionSummary(BaseModel):
    session_id: str
    simulation: str
    created_at_utc: datetime
    seed: int | None
    attempts: int
    finished: bool


class SessionsListResponse(BaseModel):
    sessions: list[SessionSummary]


class RuleEntry(BaseModel):
    id: str
    name: str
    description: str
    violations: int
    hidden: bool


class ViolationEntry(BaseModel):
    rule: str
    violations: int
    description: str
    was_hidden: bool


class ReportResponse(BaseModel):
    session_id: str
    title: str
    subtitle: str | None
    game_name: str
    attempts: int
    time_spent: int
    time_spent_formatted: str
    total_violations: int
    rules_discovered: int
    total_rules: int
    top_violations: list[ViolationEntry]
    disclosure: list[RuleEntry]


# =========================
# Helpers
# =========================

def _handle(session_id: str) -> SessionHandle:
    try:
        return registry.get(session_id)
    except UnknownSession as e:
        raise HTTPException(status_code=404, detail=str(e))


def _summary(handle: SessionHandle) -> SessionSummary:
    return SessionSummary(
        session_id=handle.session_id,
        simulation=handle.simulation.name,
        created_at_utc=handle.created_at_utc,
        seed=handle.seed,
        attempts=handle.simulation.engine.attempt_number,
        finished=handle.simulation.finished,
    )


def _action_response(session_id: str, sim: Simulation, outcome: Outcome) -> ActionResponse:
    result = outcome.result
    return ActionResponse(
        session_id=session_id,
        action=outcome.action,
        attempt_number=sim.engine.attempt_number,
        evaluated=result is not None,
        passed=outcome.passed,
        failed_rule_ids=list(result.failed_rule_ids) if result is not None else [],
        messages=list(outcome.messages),
        finished=outcome.finished,
        data=dict(outcome.data),
    )


# =========================
# Routes
# =========================

@router.get("/simulations", response_model=SimulationsResponse)
def list_simulations() -> SimulationsResponse:
    return SimulationsResponse(simulations=available())


@router.post("/sessions", response_model=CreateSessionResponse)
def create_session(payload: CreateSessionRequest) -> CreateSessionResponse:
    seed = payload.seed if payload.seed is not None else settings.default_seed
    try:
        handle = registry.create(simulation=payload.simulation, seed=seed)
    except UnknownSimulation as e:
        raise HTTPException(status_code=404, detail=str(e))
    return CreateSessionResponse(session_id=handle.session_id, simulation=handle.simulation.name)


@router.get("/sessions", response_model=SessionsListResponse)
def list_sessions() -> SessionsListResponse:
    return SessionsListResponse(sessions=[_summary(h) for h in registry.list()])


@router.get("/sessions/{session_id}", response_model=SessionSummary)
def get_session(session_id: str) -> SessionSummary:
    handle = _handle(session_id)
    return handle.run(lambda sim: _summary(handle))


@router.post("/sessions/{session_id}/actions", response_model=ActionResponse)
def act(session_id: str, payload: ActionRequest) -> ActionResponse:
    handle = _handle(session_id)

    def _act(sim: Simulation) -> ActionResponse:
        if sim.finished:
            raise HTTPException(status_code=409, detail="session already finished")
        outcome = sim.act(payload.input)
        log.info("session.action", session_id=session_id, action=outcome.action, passed=outcome.passed)
        return _action_response(session_id, sim, outcome)

    try:
        return handle.run(_act)
    except InvalidAction as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/sessions/{session_id}/report", response_model=ReportResponse)
def report(session_id: str) -> ReportResponse:
    handle = _handle(session_id)

    def _report(sim: Simulation) -> ReportResponse:
        engine = sim.engine
        rep = build_report(
            engine.get_stats(),
            engine.get_violation_summary(),
            engine.get_full_rule_disclosure(),
            subtitle=sim.corpus.success() if sim.finished else None,
        )
        shaped = rep.to_dict()
        return ReportResponse(
            session_id=session_id,
            title=rep.title,
            subtitle=rep.subtitle,
            game_name=rep.stats.game_name,
            attempts=rep.attempts,
            time_spent=rep.stats.time_spent,
            time_spent_formatted=rep.time_spent_formatted,
            total_violations=rep.total_violations,
            rules_discovered=rep.rules_discovered,
            total_rules=rep.total_rules,
            top_violations=[ViolationEntry(**v) for v in shaped["top_violations"]],
            disclosure=[RuleEntry(**r) for r in shaped["disclosure"]],
        )

    return handle.run(_report)


@router.post("/sessions/{session_id}/reset", response_model=SessionSummary)
def reset_session(session_id: str) -> SessionSummary:
    handle = _handle(session_id)

    def _reset(sim: Simulation) -> SessionSummary:
        sim.reset()
        return _summary(handle)

    return handle.run(_reset)


@router.delete("/sessions/{session_id}", status_code=204)
def delete_session(session_id: str) -> None:
    try:
        registry.remove(session_id)
    except UnknownSession as e:
        raise HTTPException(status_code=404, detail=str(e))
