"""Assignee-based point-in-time queries and workload aggregations."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

import pandas as pd

from jira_cycles.analytics.metrics.reconstruction import state_at
from jira_cycles.core.config import (
    DEFAULT_WORKFLOW,
    HEALTH_DISPLAY_ORDER,
    HEALTH_UNKNOWN,
    OVERLOADED_PROJECT_COUNT,
    WorkflowConfig,
)
from jira_cycles.core.mappers import infer_creation_state
from jira_cycles.core.models import IssueHistory, ReconstructedState
from jira_cycles.core.status import is_active_state


def _state(history: IssueHistory, instant: datetime) -> ReconstructedState:
    creation = infer_creation_state(history.snapshot, history.events)
    return state_at(history.events, creation, instant)


def _archived_by(history: IssueHistory, instant: datetime) -> bool:
    archived_at = history.snapshot.archived_at
    return archived_at is not None and archived_at <= instant


def was_assigned_at_date(history: IssueHistory, member: str, instant: datetime) -> bool:
    """True when ``member`` was the issue's assignee as of ``instant``.

    Always False before the issue was created.
    """
    return _state(history, instant).assignee == member


def issues_active_for_member(
    histories: Iterable[IssueHistory],
    member: str,
    instant: datetime,
    workflow: WorkflowConfig = DEFAULT_WORKFLOW,
) -> list[str]:
    """Keys of issues assigned to ``member`` and active as of ``instant``."""
    keys: list[str] = []
    for history in histories:
        if _archived_by(history, instant):
            continue
        state = _state(history, instant)
        if state.assignee != member:
            continue
        if is_active_state(state.status, state.health, workflow):
            keys.append(history.key)
    return sorted(keys)


def health_breakdown_at(
    histories: Iterable[IssueHistory],
    member: str,
    instant: datetime,
    workflow: WorkflowConfig = DEFAULT_WORKFLOW,
) -> dict[str, int]:
    """Count of ``member``'s active issues per reconstructed health value.

    Health values outside the known display order are counted as Unknown.
    """
    breakdown = dict.fromkeys(HEALTH_DISPLAY_ORDER, 0)
    for history in histories:
        if _archived_by(history, instant):
            continue
        state = _state(history, instant)
        if state.assignee != member or state.status not in workflow.active_statuses:
            continue
        health = state.health if state.health in breakdown else HEALTH_UNKNOWN
        breakdown[health] += 1
    return breakdown


def reconstruct_frame(
    histories: Iterable[IssueHistory],
    instants: Sequence[datetime],
    workflow: WorkflowConfig = DEFAULT_WORKFLOW,
) -> pd.DataFrame:
    """Long-form frame of every issue's reconstructed state at each instant."""
    rows = []
    for history in histories:
        creation = infer_creation_state(history.snapshot, history.events)
        for instant in instants:
            if creation.created is not None and instant < creation.created:
                continue
            state = state_at(history.events, creation, instant)
            rows.append(
                {
                    "instant": instant,
                    "key": history.key,
                    "assignee": state.assignee,
                    "status": state.status,
                    "health": state.health or HEALTH_UNKNOWN,
                    "is_active": (not _archived_by(history, instant))
                    and is_active_state(state.status, state.health, workflow),
                }
            )
    return pd.DataFrame(rows, columns=["instant", "key", "assignee", "status", "health", "is_active"])


def workload_by_assignee(
    histories: Iterable[IssueHistory],
    instant: datetime,
    workflow: WorkflowConfig = DEFAULT_WORKFLOW,
    limit: int = 200,
) -> pd.DataFrame:
    """Active project counts per assignee as of ``instant``."""
    frame = reconstruct_frame(histories, [instant], workflow)
    if frame.empty:
        return pd.DataFrame(columns=["assignee", "active_projects", "is_overloaded"])
    active = frame[frame["is_active"]].copy()
    if active.empty:
        return pd.DataFrame(columns=["assignee", "active_projects", "is_overloaded"])
    active["assignee"] = active["assignee"].fillna("Unassigned")
    agg = (
        active.groupby("assignee", dropna=False)
        .agg(active_projects=("key", "nunique"))
        .sort_values(by="active_projects", ascending=False, kind="stable")
        .head(limit)
        .reset_index()
    )
    agg["is_overloaded"] = agg["active_projects"] >= OVERLOADED_PROJECT_COUNT
    return agg


def weekly_trend(
    histories: Iterable[IssueHistory],
    week_starts: Sequence[datetime],
    workflow: WorkflowConfig = DEFAULT_WORKFLOW,
    assignees: Sequence[str] | None = None,
) -> pd.DataFrame:
    """Active issue counts per week, broken down by status and health.

    Returns one row per week start with a ``total`` column plus one column
    per pipeline status and per health value.
    """
    frame = reconstruct_frame(list(histories), week_starts, workflow)
    columns = ["week", "total", *workflow.status_order, *HEALTH_DISPLAY_ORDER]
    rows = []
    for week in week_starts:
        row = dict.fromkeys(columns, 0)
        row["week"] = week
        if not frame.empty:
            current = frame[(frame["instant"] == week) & frame["is_active"]]
            if assignees is not None:
                current = current[current["assignee"].isin(list(assignees))]
            row["total"] = int(current["key"].nunique())
            for status, count in current["status"].value_counts().items():
                if status in row:
                    row[status] = int(count)
            for health, count in current["health"].value_counts().items():
                key = health if health in HEALTH_DISPLAY_ORDER else HEALTH_UNKNOWN
                row[key] += int(count)
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)
