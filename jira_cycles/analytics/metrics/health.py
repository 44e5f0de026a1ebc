"""Health-field history: risk onset, weeks at risk, emoji timelines."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from jira_cycles.core.config import DEFAULT_WORKFLOW, HEALTH_EMOJI, HEALTH_UNKNOWN, WorkflowConfig
from jira_cycles.core.models import ChangeEvent, ChangeField

ONE_WEEK = timedelta(weeks=1)


@dataclass(frozen=True, slots=True)
class HealthPoint:
    timestamp: datetime
    health: str
    emoji: str


def _health_changes(events: Iterable[ChangeEvent]) -> list[ChangeEvent]:
    return sorted((ev for ev in events if ev.field is ChangeField.HEALTH), key=lambda ev: ev.timestamp)


def first_risk_date(events: Iterable[ChangeEvent], workflow: WorkflowConfig = DEFAULT_WORKFLOW) -> datetime | None:
    for ev in _health_changes(events):
        if ev.to_value in workflow.risk_health_values:
            return ev.timestamp
    return None


def weeks_at_risk(
    events: Iterable[ChangeEvent],
    now: datetime,
    workflow: WorkflowConfig = DEFAULT_WORKFLOW,
) -> int:
    """Whole weeks (rounded up, minimum 1) since the latest move into a risk health.

    Returns 0 when the issue never entered a risk health or has since
    recovered to a non-risk value.
    """
    changes = _health_changes(events)
    if not changes or changes[-1].to_value not in workflow.risk_health_values:
        return 0
    risk_start = changes[-1].timestamp
    for ev in reversed(changes):
        if ev.to_value not in workflow.risk_health_values:
            break
        risk_start = ev.timestamp
    if now <= risk_start:
        return 1
    return max(1, math.ceil((now - risk_start) / ONE_WEEK))


def health_history(events: Iterable[ChangeEvent], limit: int = 10) -> tuple[list[HealthPoint], str]:
    """Health timeline plus a compact emoji summary of the last ``limit`` changes."""
    points = [
        HealthPoint(
            timestamp=ev.timestamp,
            health=ev.to_value or HEALTH_UNKNOWN,
            emoji=HEALTH_EMOJI.get(ev.to_value or HEALTH_UNKNOWN, HEALTH_EMOJI[HEALTH_UNKNOWN]),
        )
        for ev in _health_changes(events)
    ]
    if not points:
        return [], "No health history available"
    return points, " ".join(p.emoji for p in points[-limit:])
