"""Active/inactive partitioning of a discovery cycle's calendar time.

The walk is a fold over the merged status + health timeline between the
cycle boundaries. Each sub-interval ``[last_boundary, event_time)`` is judged
by the state that held *during* it, so an event at ``t`` only affects time
from ``t`` onwards.

Day rounding is a ceiling on the elapsed time in days. Any inactive span
shorter than a day therefore counts as one full day; this mirrors the
reports the cycle numbers have always been compared against.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from jira_cycles.core.models import ChangeEvent, ChangeField, InactiveSpan, ReconstructedState
from jira_cycles.core.status import InactivePredicate

ONE_DAY = timedelta(days=1)


@dataclass(slots=True)
class IntervalSummary:
    calendar_days: int
    active_days: int
    inactive_days: int
    inactive_spans: list[InactiveSpan] = field(default_factory=list)


def ceil_days(start: datetime, end: datetime) -> int:
    """Whole days between two instants, rounded up; zero for empty spans."""
    if end <= start:
        return 0
    return math.ceil((end - start) / ONE_DAY)


def accumulate_active_inactive(
    merged_events: Iterable[ChangeEvent],
    start_date: datetime,
    end_date: datetime,
    inactive_predicate: InactivePredicate,
    initial_state: ReconstructedState,
) -> IntervalSummary:
    """Partition ``[start_date, end_date]`` into active and inactive time.

    Parameters
    ----------
    merged_events : iterable of ChangeEvent
        Any mix of events; only status and health changes inside the window
        are considered (assignee changes never affect activity).
    start_date, end_date : datetime
        Cycle boundaries (inclusive window for events).
    inactive_predicate : callable
        ``(status, health) -> bool``; True marks the state as inactive.
    initial_state : ReconstructedState
        State in force at ``start_date``, including events exactly at it.

    Returns
    -------
    IntervalSummary
        Calendar days, active days, total inactive days and the merged,
        sorted, clipped inactive spans.
    """
    if end_date <= start_date:
        return IntervalSummary(calendar_days=0, active_days=0, inactive_days=0)

    timeline = sorted(
        (
            ev
            for ev in merged_events
            if ev.field in (ChangeField.STATUS, ChangeField.HEALTH) and start_date <= ev.timestamp <= end_date
        ),
        key=lambda ev: ev.timestamp,
    )

    status = initial_state.status
    health = initial_state.health
    spans: list[InactiveSpan] = []
    last_boundary = start_date

    def _close(until: datetime) -> None:
        if until <= last_boundary or not inactive_predicate(status, health):
            return
        if spans and spans[-1].end == last_boundary:
            spans[-1] = InactiveSpan(spans[-1].start, until)
        else:
            spans.append(InactiveSpan(last_boundary, until))

    for ev in timeline:
        if ev.timestamp > last_boundary:
            _close(ev.timestamp)
            last_boundary = ev.timestamp
        # Events at start_date are already folded into initial_state.
        if ev.timestamp == start_date:
            continue
        if ev.field is ChangeField.STATUS:
            status = ev.to_value
        else:
            health = ev.to_value
    _close(end_date)

    calendar_days = ceil_days(start_date, end_date)
    inactive_days = sum(ceil_days(span.start, span.end) for span in spans)
    active_days = max(0, calendar_days - inactive_days)
    return IntervalSummary(
        calendar_days=calendar_days,
        active_days=active_days,
        inactive_days=inactive_days,
        inactive_spans=spans,
    )
