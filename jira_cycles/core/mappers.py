"""Mapping raw Jira issue JSON and changelog payloads into domain models."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import pandas as pd

from .config import (
    ASSIGNEE_FIELD_NAMES,
    DEFAULT_WORKFLOW,
    FIELD_IDS,
    HEALTH_FIELD_NAMES,
    STATUS_FIELD_NAMES,
    WorkflowConfig,
)
from .models import (
    ChangeEvent,
    ChangeField,
    CreationState,
    DiscoveryCycle,
    IssueHistory,
    IssueSnapshot,
)
from .status import clean_status_name, normalize_workflow_status


def parse_dt(val):
    if not val:
        return None
    ts = pd.to_datetime(val, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return ts.to_pydatetime()


def _option_value(value: Any) -> str | None:
    """Extract the display text of a Jira select/option custom field."""
    if value is None:
        return None
    if isinstance(value, dict):
        text = value.get("value") or value.get("name") or value.get("displayName")
        return clean_status_name(text)
    if isinstance(value, list):
        for item in value:
            text = _option_value(item)
            if text:
                return text
        return None
    return clean_status_name(value)


def _classify_item(item: dict[str, Any]) -> ChangeField | None:
    field_name = str(item.get("field") or "").strip().lower()
    field_id = str(item.get("fieldId") or "").strip().lower()
    if field_name in STATUS_FIELD_NAMES or field_id in STATUS_FIELD_NAMES:
        return ChangeField.STATUS
    if field_name in HEALTH_FIELD_NAMES or field_id in HEALTH_FIELD_NAMES:
        return ChangeField.HEALTH
    if field_name in ASSIGNEE_FIELD_NAMES or field_id in ASSIGNEE_FIELD_NAMES:
        return ChangeField.ASSIGNEE
    return None


def map_issue(raw: dict[str, Any], workflow: WorkflowConfig = DEFAULT_WORKFLOW) -> IssueSnapshot:
    fields = raw.get("fields") or {}
    return IssueSnapshot(
        key=raw.get("key"),
        summary=fields.get("summary"),
        status=normalize_workflow_status(
            (fields.get("status") or {}).get("name") if fields.get("status") else None, workflow
        ),
        health=_option_value(fields.get(FIELD_IDS["health"])),
        assignee=(fields.get("assignee") or {}).get("displayName") if fields.get("assignee") else None,
        created=parse_dt(fields.get("created")),
        updated=parse_dt(fields.get("updated")),
        archived_at=parse_dt(fields.get(FIELD_IDS["archived_on"])),
        complexity=_option_value(fields.get(FIELD_IDS["discovery_complexity"])),
        labels=list(fields.get("labels", []) or []),
    )


def histories_to_events(
    issue_key: str,
    histories: Iterable[dict[str, Any]] | None,
    workflow: WorkflowConfig = DEFAULT_WORKFLOW,
) -> list[ChangeEvent]:
    """Normalize a raw changelog into time-ordered :class:`ChangeEvent` records.

    Only status, health and assignee items are kept. Histories without a
    parseable ``created`` timestamp are dropped. Events sharing a timestamp
    keep their changelog order (the sort is stable).
    """
    events: list[ChangeEvent] = []
    for history in histories or []:
        if not isinstance(history, dict):
            continue
        created = parse_dt(history.get("created"))
        if created is None:
            continue
        author = (history.get("author") or {}).get("displayName")
        for item in history.get("items") or []:
            if not isinstance(item, dict):
                continue
            change_field = _classify_item(item)
            if change_field is None:
                continue
            from_value = item.get("fromString")
            to_value = item.get("toString")
            if change_field is ChangeField.STATUS:
                from_value = normalize_workflow_status(from_value, workflow)
                to_value = normalize_workflow_status(to_value, workflow)
            else:
                from_value = clean_status_name(from_value)
                to_value = clean_status_name(to_value)
            events.append(
                ChangeEvent(
                    issue_key=issue_key,
                    field=change_field,
                    from_value=from_value,
                    to_value=to_value,
                    timestamp=created,
                    author=author,
                )
            )
    return sorted(events, key=lambda ev: ev.timestamp)


def events_for_field(events: Iterable[ChangeEvent], change_field: ChangeField) -> list[ChangeEvent]:
    return [ev for ev in events if ev.field is change_field]


def infer_creation_state(snapshot: IssueSnapshot, events: Iterable[ChangeEvent]) -> CreationState:
    """Derive the values an issue was created with.

    The changelog only records changes, so the creation value of a field is
    the ``from_value`` of its earliest change; a field that never changed
    still holds its creation value in the current snapshot.
    """
    first_seen: dict[ChangeField, ChangeEvent] = {}
    for ev in sorted(events, key=lambda e: e.timestamp):
        first_seen.setdefault(ev.field, ev)

    def _initial(change_field: ChangeField, current: str | None) -> str | None:
        ev = first_seen.get(change_field)
        return ev.from_value if ev is not None else current

    return CreationState(
        status=_initial(ChangeField.STATUS, snapshot.status),
        health=_initial(ChangeField.HEALTH, snapshot.health),
        assignee=_initial(ChangeField.ASSIGNEE, snapshot.assignee),
        created=snapshot.created,
    )


def build_issue_history(
    raw: dict[str, Any],
    histories: Iterable[dict[str, Any]] | None = None,
    workflow: WorkflowConfig = DEFAULT_WORKFLOW,
) -> IssueHistory:
    """Combine an issue payload and its changelog into an :class:`IssueHistory`.

    When ``histories`` is omitted the changelog embedded in the search
    payload (``expand=changelog``) is used.
    """
    snapshot = map_issue(raw, workflow)
    if histories is None:
        histories = (raw.get("changelog") or {}).get("histories", []) or []
    return IssueHistory(snapshot=snapshot, events=histories_to_events(snapshot.key, histories, workflow))


def cycles_to_dataframe(cycles: Iterable[DiscoveryCycle]) -> pd.DataFrame:
    rows = []
    for c in cycles:
        rows.append(
            {
                "key": c.issue_key,
                "discovery_start": c.start_date,
                "discovery_end": c.end_date,
                "end_classification": c.end_classification.value,
                "calendar_days": c.calendar_days,
                "active_days": c.active_days,
                "inactive_span_count": len(c.inactive_spans),
                "completion_period": c.completion_period,
                "complexity": c.complexity,
            }
        )
    df = pd.DataFrame(rows)
    if df.empty:
        return df
    for col in ("discovery_start", "discovery_end"):
        df[col] = pd.to_datetime(df[col], utc=True, errors="coerce")
    return df.sort_values(by="key").reset_index(drop=True)
