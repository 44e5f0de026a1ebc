"""Discovery cycle detection and per-issue cycle derivation.

The detector scans status transitions only; statuses are judged through a
:class:`WorkflowConfig` so the same code serves any pipeline taxonomy.

Boundary policy: the *first* transition into discovery starts the cycle and
the *first* discovery exit into a terminal status ends it. An issue that
leaves discovery early and comes back keeps its first exit as the end date.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from jira_cycles.core.config import DEFAULT_WORKFLOW, TIMEZONE, WorkflowConfig
from jira_cycles.core.mappers import events_for_field, infer_creation_state
from jira_cycles.core.models import (
    ChangeEvent,
    ChangeField,
    DiscoveryCycle,
    EndClassification,
    IssueHistory,
)
from jira_cycles.core.status import (
    is_discovery_status,
    is_terminal_status,
    make_inactive_predicate,
    terminal_classification,
)

from .intervals import accumulate_active_inactive
from .periods import quarter_label
from .reconstruction import state_at


@dataclass(frozen=True, slots=True)
class CycleBoundary:
    start_date: datetime | None
    end_date: datetime | None
    end_classification: EndClassification


def _first(events: Sequence[ChangeEvent], predicate) -> ChangeEvent | None:
    for ev in events:
        if predicate(ev):
            return ev
    return None


def detect_cycle(
    status_events: Sequence[ChangeEvent],
    current_status: str | None,
    workflow: WorkflowConfig = DEFAULT_WORKFLOW,
    *,
    created: datetime | None = None,
    creation_status: str | None = None,
) -> CycleBoundary:
    """Find the discovery start/end boundaries of one issue and classify the end.

    Parameters
    ----------
    status_events : sequence of ChangeEvent
        The issue's status changes (other fields are ignored).
    current_status : str | None
        Status in the current snapshot; decides whether the issue is open.
    workflow : WorkflowConfig
        Discovery and terminal status sets.
    created, creation_status : optional
        Creation timestamp and creation-time status. An issue created straight
        into a discovery status starts its cycle at ``created``.

    Returns
    -------
    CycleBoundary
    """
    events = sorted(
        (ev for ev in status_events if ev.field is ChangeField.STATUS),
        key=lambda ev: ev.timestamp,
    )

    start_index = next(
        (i for i, ev in enumerate(events) if is_discovery_status(ev.to_value, workflow)),
        None,
    )
    if start_index is not None:
        start = events[start_index].timestamp
        after = events[start_index + 1 :]
    elif created is not None and is_discovery_status(creation_status, workflow):
        start = created
        after = [ev for ev in events if ev.timestamp >= created]
    else:
        start = None
        after = []

    if start is None:
        # Only a logged move into the build family skips discovery; closing as
        # Won't Do / Live / Beta, or having no status log at all, does not.
        entered_build = _first(
            events,
            lambda ev: terminal_classification(ev.to_value, workflow) is EndClassification.BUILD_TRANSITION,
        )
        if entered_build is not None:
            return CycleBoundary(None, entered_build.timestamp, EndClassification.DIRECT_TO_BUILD)
        return CycleBoundary(None, None, EndClassification.NO_DISCOVERY)

    exit_event = _first(
        after,
        lambda ev: is_discovery_status(ev.from_value, workflow) and is_terminal_status(ev.to_value, workflow),
    )
    if exit_event is not None:
        return CycleBoundary(start, exit_event.timestamp, terminal_classification(exit_event.to_value, workflow))

    first_terminal = _first(after, lambda ev: is_terminal_status(ev.to_value, workflow))

    # Created into discovery, closed, and the log never shows a discovery transition.
    if start_index is None and is_terminal_status(current_status, workflow):
        end = first_terminal.timestamp if first_terminal is not None else None
        return CycleBoundary(start, end, EndClassification.DIRECT_TO_BUILD)

    if not is_terminal_status(current_status, workflow):
        return CycleBoundary(start, None, EndClassification.STILL_IN_DISCOVERY)

    # Closed without a direct discovery exit (e.g. parked first, then closed).
    if first_terminal is not None:
        return CycleBoundary(start, first_terminal.timestamp, terminal_classification(first_terminal.to_value, workflow))
    return CycleBoundary(start, None, terminal_classification(current_status, workflow))


def build_discovery_cycle(
    history: IssueHistory,
    workflow: WorkflowConfig = DEFAULT_WORKFLOW,
    *,
    tz=TIMEZONE,
    as_of: datetime | None = None,
) -> DiscoveryCycle:
    """Derive the full :class:`DiscoveryCycle` record for one issue.

    Runs the detector, then the interval accountant when both boundaries are
    known. With ``as_of``, a cycle still in discovery is measured up to that
    instant (its ``end_date`` stays None).
    """
    snapshot = history.snapshot
    events = history.events
    creation = infer_creation_state(snapshot, events)
    boundary = detect_cycle(
        events_for_field(events, ChangeField.STATUS),
        snapshot.status,
        workflow,
        created=snapshot.created,
        creation_status=creation.status,
    )
    cycle = DiscoveryCycle(
        issue_key=snapshot.key,
        start_date=boundary.start_date,
        end_date=boundary.end_date,
        end_classification=boundary.end_classification,
        complexity=snapshot.complexity,
    )

    measure_end = boundary.end_date
    if (
        measure_end is None
        and as_of is not None
        and boundary.end_classification is EndClassification.STILL_IN_DISCOVERY
    ):
        measure_end = as_of

    if cycle.start_date is not None and measure_end is not None:
        summary = accumulate_active_inactive(
            events,
            cycle.start_date,
            measure_end,
            make_inactive_predicate(workflow),
            state_at(events, creation, cycle.start_date),
        )
        cycle.calendar_days = summary.calendar_days
        cycle.active_days = summary.active_days
        cycle.inactive_spans = summary.inactive_spans

    if cycle.end_date is not None:
        cycle.completion_period = quarter_label(cycle.end_date, tz)
    return cycle
