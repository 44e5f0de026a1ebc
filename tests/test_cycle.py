from datetime import UTC, datetime, timedelta

from jira_cycles.analytics.metrics.cycle import build_discovery_cycle, detect_cycle
from jira_cycles.core.config import WorkflowConfig
from jira_cycles.core.mappers import build_issue_history
from jira_cycles.core.models import ChangeEvent, ChangeField, EndClassification

T0 = datetime(2025, 1, 1, tzinfo=UTC)
INBOX = "01 Inbox"
GEN = "02 Generative Discovery"
COMMITTED = "03 Committed"
PROBLEM = "04 Problem Discovery"
BUILD = "06 Build"
LIVE = "08 Live"
WONT_DO = "Won't Do"


def _status(frm, to, days):
    return ChangeEvent("HT-1", ChangeField.STATUS, frm, to, T0 + timedelta(days=days))


def _history(ts, field, frm, to):
    return {"created": ts.isoformat(), "items": [{"field": field, "fromString": frm, "toString": to}]}


def _raw(status, created=T0, health="On Track", complexity=None):
    fields = {
        "summary": "x",
        "created": created.isoformat(),
        "updated": created.isoformat(),
        "status": {"name": status},
        "assignee": {"displayName": "Alice"},
        "customfield_10238": {"value": health},
    }
    if complexity:
        fields["customfield_10477"] = {"value": complexity}
    return {"key": "HT-1", "fields": fields}


def test_created_in_discovery_without_events_still_open():
    boundary = detect_cycle([], PROBLEM, created=T0, creation_status=PROBLEM)
    assert boundary.start_date == T0
    assert boundary.end_date is None
    assert boundary.end_classification is EndClassification.STILL_IN_DISCOVERY


def test_created_in_discovery_and_closed_without_transition_is_direct_to_build():
    boundary = detect_cycle([], BUILD, created=T0, creation_status=GEN)
    assert boundary.start_date == T0
    assert boundary.end_classification is EndClassification.DIRECT_TO_BUILD


def test_simple_discovery_to_build_cycle():
    t1 = T0 + timedelta(days=1)
    t2 = T0 + timedelta(days=11, hours=3)
    raw = _raw(BUILD)
    histories = [_history(t1, "status", INBOX, GEN), _history(t2, "status", GEN, BUILD)]
    cycle = build_discovery_cycle(build_issue_history(raw, histories))
    assert cycle.start_date == t1
    assert cycle.end_date == t2
    assert cycle.end_classification is EndClassification.BUILD_TRANSITION
    assert cycle.calendar_days == 11
    assert cycle.active_days == 11
    assert cycle.inactive_spans == []
    assert cycle.completion_period == "Q1_2025"


def test_no_discovery_when_never_entering_pipeline():
    events = [_status(INBOX, COMMITTED, 1)]
    boundary = detect_cycle(events, COMMITTED, created=T0, creation_status=INBOX)
    assert boundary.start_date is None
    assert boundary.end_date is None
    assert boundary.end_classification is EndClassification.NO_DISCOVERY


def test_direct_to_build_uses_first_terminal_entry():
    events = [_status(INBOX, BUILD, 3), _status(BUILD, LIVE, 9)]
    boundary = detect_cycle(events, LIVE, created=T0, creation_status=INBOX)
    assert boundary.start_date is None
    assert boundary.end_date == T0 + timedelta(days=3)
    assert boundary.end_classification is EndClassification.DIRECT_TO_BUILD


def test_closed_without_discovery_or_build_is_no_discovery():
    events = [_status(INBOX, WONT_DO, 2)]
    boundary = detect_cycle(events, WONT_DO, created=T0, creation_status=INBOX)
    assert boundary.start_date is None
    assert boundary.end_date is None
    assert boundary.end_classification is EndClassification.NO_DISCOVERY

    live = detect_cycle([_status(INBOX, LIVE, 2)], LIVE, created=T0, creation_status=INBOX)
    assert live.end_classification is EndClassification.NO_DISCOVERY


def test_terminal_issue_without_status_log_is_no_discovery():
    raw = {"key": "HT-1", "fields": {"created": T0.isoformat(), "status": {"name": BUILD}}}
    cycle = build_discovery_cycle(build_issue_history(raw, []))
    assert cycle.start_date is None
    assert cycle.end_date is None
    assert cycle.end_classification is EndClassification.NO_DISCOVERY
    assert cycle.calendar_days is None


def test_first_discovery_exit_wins():
    events = [
        _status(INBOX, GEN, 1),
        _status(GEN, BUILD, 5),
        _status(BUILD, PROBLEM, 7),
        _status(PROBLEM, LIVE, 20),
    ]
    boundary = detect_cycle(events, LIVE, created=T0, creation_status=INBOX)
    assert boundary.start_date == T0 + timedelta(days=1)
    assert boundary.end_date == T0 + timedelta(days=5)
    assert boundary.end_classification is EndClassification.BUILD_TRANSITION


def test_closed_after_parking_uses_first_terminal_entry():
    events = [_status(INBOX, GEN, 1), _status(GEN, COMMITTED, 4), _status(COMMITTED, WONT_DO, 8)]
    boundary = detect_cycle(events, WONT_DO, created=T0, creation_status=INBOX)
    assert boundary.end_date == T0 + timedelta(days=8)
    assert boundary.end_classification is EndClassification.WONT_DO


def test_parked_but_open_is_still_in_discovery():
    events = [_status(INBOX, GEN, 1), _status(GEN, COMMITTED, 4)]
    boundary = detect_cycle(events, COMMITTED, created=T0, creation_status=INBOX)
    assert boundary.start_date == T0 + timedelta(days=1)
    assert boundary.end_classification is EndClassification.STILL_IN_DISCOVERY


def test_still_in_discovery_measured_to_as_of():
    t1 = T0 + timedelta(days=1)
    raw = _raw(GEN, complexity="Small")
    cycle = build_discovery_cycle(
        build_issue_history(raw, [_history(t1, "status", INBOX, GEN)]),
        as_of=T0 + timedelta(days=6),
    )
    assert cycle.end_classification is EndClassification.STILL_IN_DISCOVERY
    assert cycle.end_date is None
    assert cycle.calendar_days == 5
    assert cycle.completion_period is None
    assert cycle.complexity == "Small"
    assert not cycle.is_completed


def test_no_start_means_no_day_counts():
    raw = _raw(INBOX)
    cycle = build_discovery_cycle(build_issue_history(raw, []))
    assert cycle.end_classification is EndClassification.NO_DISCOVERY
    assert cycle.calendar_days is None
    assert cycle.active_days is None


def test_completion_quarter_uses_configured_timezone():
    t1 = T0 + timedelta(days=1)
    # 02:00 UTC on April 1st is still March 31st in New York.
    t2 = datetime(2025, 4, 1, 2, tzinfo=UTC)
    raw = _raw(BUILD)
    histories = [_history(t1, "status", INBOX, GEN), _history(t2, "status", GEN, BUILD)]
    history = build_issue_history(raw, histories)
    assert build_discovery_cycle(history).completion_period == "Q1_2025"
    assert build_discovery_cycle(history, tz="UTC").completion_period == "Q2_2025"


def test_custom_workflow_taxonomy():
    workflow = WorkflowConfig(
        discovery_statuses=("Research",),
        terminal_statuses={"Shipped": "Live"},
        inactive_statuses=frozenset({"Backlog"}),
        active_statuses=frozenset({"Research"}),
        status_aliases={},
        status_order=("Backlog", "Research", "Shipped"),
    )
    events = [
        ChangeEvent("HT-1", ChangeField.STATUS, "Backlog", "Research", T0 + timedelta(days=1)),
        ChangeEvent("HT-1", ChangeField.STATUS, "Research", "Shipped", T0 + timedelta(days=4)),
    ]
    boundary = detect_cycle(events, "Shipped", workflow, created=T0, creation_status="Backlog")
    assert boundary.end_classification is EndClassification.LIVE
    assert boundary.end_date == T0 + timedelta(days=4)
