from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional, Sequence

from hostile.core.config.settings import settings
from hostile.core.rules.results import RuleExplanation, SessionStats, ViolationSummaryEntry


@dataclass(frozen=True, slots=True)
class SessionReport:
    title: str
    subtitle: str | None

    # headline counters
    attempts: int
    time_spent_formatted: str
    total_violations: int
    rules_discovered: int
    total_rules: int

    stats: SessionStats
    top_violations: tuple[ViolationSummaryEntry, ...]
    disclosure: tuple[RuleExplanation, ...]

    @property
    def hidden_rules(self) -> tuple[RuleExplanation, ...]:
        return tuple(r for r in self.disclosure if r.hidden)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["top_violations"] = [asdict(v) for v in self.top_violations]
        d["disclosure"] = [asdict(r) for r in self.disclosure]
        d["hidden_rules"] = [asdict(r) for r in self.hidden_rules]
        return d


def build_report(
    stats: SessionStats,
    violations: Sequence[ViolationSummaryEntry],
    disclosure: Sequence[RuleExplanation],
    *,
    top_n: Optional[int] = None,
    title: str = "PROCESS COMPLETE",
    subtitle: str | None = None,
) -> SessionReport:
    """
    End-of-session report. Pure: shapes data, renders nothing.

    violations is expected most-violated first (RuleEngine.get_violation_summary order).
    disclosure lists every rule that was in effect, hidden or not.
    """
    n = settings.report_top_n if top_n is None else top_n
    if n < 0:
        raise ValueError("top_n must be >= 0")

    return SessionReport(
        title=title,
        subtitle=subtitle,
        attempts=stats.attempts,
        time_spent_formatted=stats.time_spent_formatted,
        total_violations=stats.total_violations,
        rules_discovered=stats.rules_discovered,
        total_rules=stats.total_rules,
        stats=stats,
        top_violations=tuple(violations[:n]),
        disclosure=tuple(disclosure),
    )
