"""Load the workflow taxonomy from YAML (with fallbacks to the built-in defaults)."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from .config import DEFAULT_WORKFLOW, WorkflowConfig

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOW_FILE = "workflow.yaml"


def _str_tuple(value, fallback) -> tuple[str, ...]:
    if not value:
        return tuple(fallback)
    return tuple(str(v) for v in value)


def workflow_from_mapping(data: dict, base: WorkflowConfig = DEFAULT_WORKFLOW) -> WorkflowConfig:
    """Overlay the keys present in ``data`` on top of ``base``."""
    statuses = data.get("statuses") or {}
    health = data.get("health") or {}
    aliases = data.get("aliases")
    terminal = statuses.get("terminal")
    return WorkflowConfig(
        discovery_statuses=_str_tuple(statuses.get("discovery"), base.discovery_statuses),
        terminal_statuses=(
            {str(k): str(v) for k, v in terminal.items()} if terminal else dict(base.terminal_statuses)
        ),
        inactive_statuses=frozenset(_str_tuple(statuses.get("inactive"), base.inactive_statuses)),
        active_statuses=frozenset(_str_tuple(statuses.get("active"), base.active_statuses)),
        on_hold_health=str(health.get("on_hold") or base.on_hold_health),
        risk_health_values=frozenset(_str_tuple(health.get("risk"), base.risk_health_values)),
        status_aliases=(
            {str(k).lower(): str(v) for k, v in aliases.items()} if aliases else dict(base.status_aliases)
        ),
        status_order=_str_tuple(statuses.get("order"), base.status_order),
    )


def load_workflow_config(path: str | Path | None = None) -> WorkflowConfig:
    """Read ``workflow.yaml`` (project root by default) into a ``WorkflowConfig``.

    Missing files, unreadable YAML and missing keys all fall back to
    :data:`DEFAULT_WORKFLOW`.
    """
    if path is None:
        yaml_path = Path(__file__).resolve().parent.parent.parent / DEFAULT_WORKFLOW_FILE
    else:
        yaml_path = Path(path)
        if yaml_path.is_dir():
            yaml_path = yaml_path / DEFAULT_WORKFLOW_FILE
    if not yaml_path.exists():
        return DEFAULT_WORKFLOW
    try:
        data = yaml.safe_load(yaml_path.read_text()) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Could not read %s, using default workflow: %s", yaml_path, exc)
        return DEFAULT_WORKFLOW
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: expected a mapping at the top level", yaml_path)
        return DEFAULT_WORKFLOW
    return workflow_from_mapping(data)
