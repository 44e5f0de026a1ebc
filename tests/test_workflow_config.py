from pathlib import Path

from jira_cycles.core.config import DEFAULT_WORKFLOW
from jira_cycles.core.status import (
    is_active_state,
    make_inactive_predicate,
    normalize_workflow_status,
    terminal_classification,
)
from jira_cycles.core.models import EndClassification
from jira_cycles.core.workflow_config import load_workflow_config

ROOT = Path(__file__).resolve().parents[1]


def test_repository_workflow_matches_defaults():
    assert load_workflow_config(ROOT) == DEFAULT_WORKFLOW


def test_missing_file_falls_back(tmp_path):
    assert load_workflow_config(tmp_path / "nope.yaml") is DEFAULT_WORKFLOW


def test_invalid_yaml_falls_back(tmp_path):
    path = tmp_path / "workflow.yaml"
    path.write_text("statuses: [unclosed")
    assert load_workflow_config(path) is DEFAULT_WORKFLOW


def test_partial_override(tmp_path):
    path = tmp_path / "workflow.yaml"
    path.write_text(
        "statuses:\n"
        "  discovery: ['Research']\n"
        "  terminal:\n"
        "    Shipped: Live\n"
        "health:\n"
        "  on_hold: Paused\n"
    )
    workflow = load_workflow_config(tmp_path)
    assert workflow.discovery_statuses == ("Research",)
    assert workflow.terminal_statuses == {"Shipped": "Live"}
    assert workflow.on_hold_health == "Paused"
    assert workflow.inactive_statuses == DEFAULT_WORKFLOW.inactive_statuses
    assert terminal_classification("Shipped", workflow) is EndClassification.LIVE


def test_status_normalization_and_predicates():
    assert normalize_workflow_status("solution discovery") == "05 Solution Discovery"
    assert normalize_workflow_status("wont do") == "Won't Do"
    assert normalize_workflow_status("  ") is None
    assert normalize_workflow_status("Triage") == "Triage"
    inactive = make_inactive_predicate()
    assert inactive("03 Committed", "On Track")
    assert inactive("04 Problem Discovery", "On Hold")
    assert not inactive("04 Problem Discovery", "At Risk")
    assert is_active_state("07 Beta", "On Track")
    assert not is_active_state("07 Beta", "On Hold")
    assert not is_active_state("01 Inbox", None)
