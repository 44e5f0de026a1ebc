from datetime import UTC, datetime, timedelta

from jira_cycles.analytics.metrics.reconstruction import field_value_at, state_at
from jira_cycles.core.models import ChangeEvent, ChangeField, CreationState, ReconstructedState

T0 = datetime(2025, 1, 1, tzinfo=UTC)


def _ev(field, frm, to, days):
    return ChangeEvent("HT-1", field, frm, to, T0 + timedelta(days=days))


def _creation():
    return CreationState(status="01 Inbox", health="On Track", assignee="Alice", created=T0)


def _log():
    return [
        _ev(ChangeField.STATUS, "01 Inbox", "02 Generative Discovery", 2),
        _ev(ChangeField.ASSIGNEE, "Alice", "Bob", 3),
        _ev(ChangeField.HEALTH, "On Track", "At Risk", 4),
        _ev(ChangeField.STATUS, "02 Generative Discovery", "06 Build", 6),
    ]


def test_state_before_any_event_is_creation_state():
    state = state_at(_log(), _creation(), T0 + timedelta(days=1))
    assert state == ReconstructedState("01 Inbox", "On Track", "Alice")


def test_event_at_instant_is_included():
    state = state_at(_log(), _creation(), T0 + timedelta(days=2))
    assert state.status == "02 Generative Discovery"
    just_before = state_at(_log(), _creation(), T0 + timedelta(days=2) - timedelta(microseconds=1))
    assert just_before.status == "01 Inbox"


def test_fields_reconstructed_independently():
    state = state_at(_log(), _creation(), T0 + timedelta(days=5))
    assert state == ReconstructedState("02 Generative Discovery", "At Risk", "Bob")


def test_ties_resolved_by_log_order():
    ts = 2
    events = [
        _ev(ChangeField.STATUS, "01 Inbox", "03 Committed", ts),
        _ev(ChangeField.STATUS, "03 Committed", "04 Problem Discovery", ts),
    ]
    assert field_value_at(events, ChangeField.STATUS, "01 Inbox", T0 + timedelta(days=ts)) == "04 Problem Discovery"


def test_instant_before_creation_has_no_state():
    state = state_at(_log(), _creation(), T0 - timedelta(hours=1))
    assert state == ReconstructedState(None, None, None)


def test_reconstruction_is_deterministic():
    log = _log()
    instant = T0 + timedelta(days=4)
    first = state_at(log, _creation(), instant)
    second = state_at(log, _creation(), instant)
    assert first == second
    assert len(log) == 4


def test_state_matches_last_event_up_to_instant():
    log = _log()
    for days in range(0, 8):
        instant = T0 + timedelta(days=days)
        status_events = [ev for ev in log if ev.field is ChangeField.STATUS and ev.timestamp <= instant]
        expected = status_events[-1].to_value if status_events else "01 Inbox"
        assert state_at(log, _creation(), instant).status == expected
