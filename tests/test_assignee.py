from datetime import UTC, datetime, timedelta

from jira_cycles.analytics.aggregations.assignee import (
    health_breakdown_at,
    issues_active_for_member,
    was_assigned_at_date,
    weekly_trend,
    workload_by_assignee,
)
from jira_cycles.core.models import ChangeEvent, ChangeField, IssueHistory, IssueSnapshot

T0 = datetime(2025, 1, 1, tzinfo=UTC)
DISCOVERY = "04 Problem Discovery"


def _issue(key, status=DISCOVERY, health="On Track", assignee="Alice", created=T0, archived_at=None, events=()):
    snap = IssueSnapshot(
        key=key,
        summary=key,
        status=status,
        health=health,
        assignee=assignee,
        created=created,
        updated=created,
        archived_at=archived_at,
    )
    return IssueHistory(snap, list(events))


def _ev(key, field, frm, to, days):
    return ChangeEvent(key, field, frm, to, T0 + timedelta(days=days))


def test_not_assigned_before_creation():
    issue = _issue("HT-1", created=T0 + timedelta(days=5))
    assert was_assigned_at_date(issue, "Alice", T0) is False
    assert was_assigned_at_date(issue, "Alice", T0 + timedelta(days=6)) is True


def test_assignment_follows_changelog():
    issue = _issue("HT-1", assignee="Bob", events=[_ev("HT-1", ChangeField.ASSIGNEE, "Alice", "Bob", 3)])
    assert was_assigned_at_date(issue, "Alice", T0 + timedelta(days=2))
    assert not was_assigned_at_date(issue, "Alice", T0 + timedelta(days=3))
    assert was_assigned_at_date(issue, "Bob", T0 + timedelta(days=3))


def test_active_issues_excludes_parked_on_hold_and_archived():
    instant = T0 + timedelta(days=10)
    histories = [
        _issue("HT-3"),
        _issue("HT-1", status="06 Build"),
        _issue("HT-2", health="On Hold"),
        _issue("HT-4", status="03 Committed"),
        _issue("HT-5", archived_at=T0 + timedelta(days=8)),
        _issue("HT-6", assignee="Bob"),
    ]
    assert issues_active_for_member(histories, "Alice", instant) == ["HT-1", "HT-3"]


def test_active_issues_reconstructed_in_the_past():
    events = [_ev("HT-1", ChangeField.STATUS, "01 Inbox", DISCOVERY, 4)]
    issue = _issue("HT-1", events=events)
    assert issues_active_for_member([issue], "Alice", T0 + timedelta(days=2)) == []
    assert issues_active_for_member([issue], "Alice", T0 + timedelta(days=4)) == ["HT-1"]


def test_health_breakdown_counts_unknown():
    histories = [_issue("HT-1"), _issue("HT-2", health="At Risk"), _issue("HT-3", health=None)]
    breakdown = health_breakdown_at(histories, "Alice", T0 + timedelta(days=1))
    assert breakdown["On Track"] == 1
    assert breakdown["At Risk"] == 1
    assert breakdown["Unknown"] == 1


def test_workload_flags_overloaded_members():
    histories = [_issue(f"HT-{i}") for i in range(6)] + [_issue("HT-99", assignee="Bob")]
    workload = workload_by_assignee(histories, T0 + timedelta(days=1))
    assert list(workload["assignee"]) == ["Alice", "Bob"]
    assert list(workload["active_projects"]) == [6, 1]
    assert list(workload["is_overloaded"]) == [True, False]


def test_weekly_trend_reconstructs_each_week():
    events = [_ev("HT-2", ChangeField.HEALTH, "On Track", "At Risk", 8)]
    histories = [
        _issue("HT-1"),
        _issue("HT-2", health="At Risk", events=events),
        _issue("HT-3", created=T0 + timedelta(days=9)),
    ]
    weeks = [T0 + timedelta(days=d) for d in (0, 7, 14)]
    trend = weekly_trend(histories, weeks)
    assert list(trend["total"]) == [2, 2, 3]
    assert list(trend["At Risk"]) == [0, 0, 1]
    assert list(trend[DISCOVERY]) == [2, 2, 3]
    only_bob = weekly_trend(histories, weeks, assignees=["Bob"])
    assert list(only_bob["total"]) == [0, 0, 0]
