"""Point-in-time reconstruction of issue fields from the change log (pure)."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from jira_cycles.core.models import ChangeEvent, ChangeField, CreationState, ReconstructedState


def field_value_at(
    events: Iterable[ChangeEvent],
    change_field: ChangeField,
    fallback: str | None,
    instant: datetime,
) -> str | None:
    """Value of one field as of ``instant`` (inclusive).

    The latest event at or before ``instant`` wins; among events sharing that
    timestamp the one appearing last in the log wins. With no such event the
    ``fallback`` (creation-time value) is returned.
    """
    value = fallback
    latest: datetime | None = None
    for ev in events:
        if ev.field is not change_field or ev.timestamp > instant:
            continue
        if latest is None or ev.timestamp >= latest:
            latest = ev.timestamp
            value = ev.to_value
    return value


def state_at(
    events: Iterable[ChangeEvent],
    creation: CreationState,
    instant: datetime,
) -> ReconstructedState:
    """Reconstruct status, health and assignee as of ``instant``.

    An instant before the issue's creation yields an all-``None`` state,
    since the issue did not exist yet.
    """
    if creation.created is not None and instant < creation.created:
        return ReconstructedState()
    log = list(events)
    return ReconstructedState(
        status=field_value_at(log, ChangeField.STATUS, creation.status, instant),
        health=field_value_at(log, ChangeField.HEALTH, creation.health, instant),
        assignee=field_value_at(log, ChangeField.ASSIGNEE, creation.assignee, instant),
    )
