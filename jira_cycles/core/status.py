"""Status normalization and workflow categorization utilities.

This module provides centralized status handling functions shared by the
event log adapter, the cycle detector and the reporting queries. Every
helper takes a :class:`WorkflowConfig` so the taxonomy stays configuration.
"""

from __future__ import annotations

from collections.abc import Callable

from .config import DEFAULT_WORKFLOW, WorkflowConfig
from .models import EndClassification

InactivePredicate = Callable[[str | None, str | None], bool]


def clean_status_name(value: str | None) -> str | None:
    """Sanitize a status string, converting null-like values to ``None``.

    Parameters
    ----------
    value : str | None
        Raw status string.

    Returns
    -------
    str | None
        Stripped status string or None for empty/null values.
    """
    if value is None:
        return None
    text = " ".join(str(value).split())
    if not text:
        return None
    if text.lower() in {"nan", "none", "null"}:
        return None
    return text


def normalize_workflow_status(value: str | None, workflow: WorkflowConfig = DEFAULT_WORKFLOW) -> str | None:
    """Map a raw Jira status to its canonical pipeline name.

    Known canonical names are returned as-is (case-insensitive match), aliases
    are resolved through ``workflow.status_aliases``, and anything else is
    returned cleaned but otherwise untouched so new statuses stay visible.

    Examples
    --------
    >>> normalize_workflow_status("problem discovery")
    '04 Problem Discovery'
    >>> normalize_workflow_status("  06 Build ")
    '06 Build'
    """
    text = clean_status_name(value)
    if text is None:
        return None
    lowered = text.lower()
    for status in workflow.status_order:
        if lowered == status.lower():
            return status
    if lowered in workflow.status_aliases:
        return workflow.status_aliases[lowered]
    return text


def is_discovery_status(value: str | None, workflow: WorkflowConfig = DEFAULT_WORKFLOW) -> bool:
    return value is not None and value in workflow.discovery_statuses


def is_terminal_status(value: str | None, workflow: WorkflowConfig = DEFAULT_WORKFLOW) -> bool:
    return value is not None and value in workflow.terminal_statuses


def terminal_classification(
    value: str | None, workflow: WorkflowConfig = DEFAULT_WORKFLOW
) -> EndClassification | None:
    """Return the end classification for a terminal status, else None."""
    if not is_terminal_status(value, workflow):
        return None
    return EndClassification(workflow.terminal_statuses[value])


def make_inactive_predicate(workflow: WorkflowConfig = DEFAULT_WORKFLOW) -> InactivePredicate:
    """Build the ``(status, health) -> bool`` inactivity test for a workflow.

    A state is inactive when the status is parked (inactive set) or the
    health carries the on-hold marker, regardless of status.
    """
    inactive = frozenset(workflow.inactive_statuses)
    on_hold = workflow.on_hold_health

    def _is_inactive(status: str | None, health: str | None) -> bool:
        return status in inactive or (health is not None and health == on_hold)

    return _is_inactive


def is_active_state(
    status: str | None,
    health: str | None,
    workflow: WorkflowConfig = DEFAULT_WORKFLOW,
) -> bool:
    """True when a reconstructed state counts toward someone's active workload."""
    if status not in workflow.active_statuses:
        return False
    return health != workflow.on_hold_health
