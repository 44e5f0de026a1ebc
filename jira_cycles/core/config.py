"""Central configuration, constants, workflow taxonomy, and tuning knobs."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

# =============================================================================
# Jira Connection Settings
# =============================================================================
JIRA_DEFAULT_SERVER = "https://hometap.atlassian.net"
TIMEZONE = "America/New_York"
DEFAULT_PROJECT_KEY = "HT"

# =============================================================================
# Workflow Status Configuration
# =============================================================================
STATUS_INBOX = "01 Inbox"
STATUS_GENERATIVE_DISCOVERY = "02 Generative Discovery"
STATUS_COMMITTED = "03 Committed"
STATUS_PROBLEM_DISCOVERY = "04 Problem Discovery"
STATUS_SOLUTION_DISCOVERY = "05 Solution Discovery"
STATUS_BUILD = "06 Build"
STATUS_BETA = "07 Beta"
STATUS_LIVE = "08 Live"
STATUS_WONT_DO = "Won't Do"

# Canonical pipeline order for status columns/breakdowns
STATUS_DISPLAY_ORDER: Sequence[str] = (
    STATUS_INBOX,
    STATUS_GENERATIVE_DISCOVERY,
    STATUS_COMMITTED,
    STATUS_PROBLEM_DISCOVERY,
    STATUS_SOLUTION_DISCOVERY,
    STATUS_BUILD,
    STATUS_BETA,
    STATUS_LIVE,
    STATUS_WONT_DO,
)

# Ordered: earliest discovery phase first
DISCOVERY_STATUSES: Sequence[str] = (
    STATUS_GENERATIVE_DISCOVERY,
    STATUS_PROBLEM_DISCOVERY,
    STATUS_SOLUTION_DISCOVERY,
)

# Statuses that conclude discovery, mapped to the end classification label
TERMINAL_STATUSES: Mapping[str, str] = {
    STATUS_BUILD: "Build Transition",
    STATUS_BETA: "Beta",
    STATUS_LIVE: "Live",
    STATUS_WONT_DO: "Won't Do",
}

# Parked / administrative statuses that do not count as active time
INACTIVE_STATUSES: frozenset[str] = frozenset(
    {
        STATUS_INBOX,
        STATUS_COMMITTED,
        STATUS_LIVE,
        STATUS_WONT_DO,
    }
)

# Statuses counted as "active work" for workload reporting
ACTIVE_STATUSES: frozenset[str] = frozenset(
    {
        STATUS_GENERATIVE_DISCOVERY,
        STATUS_PROBLEM_DISCOVERY,
        STATUS_SOLUTION_DISCOVERY,
        STATUS_BUILD,
        STATUS_BETA,
    }
)

# Map various status strings to canonical names (lowercase keys)
STATUS_ALIASES: dict[str, str] = {
    "inbox": STATUS_INBOX,
    "generative discovery": STATUS_GENERATIVE_DISCOVERY,
    "committed": STATUS_COMMITTED,
    "problem discovery": STATUS_PROBLEM_DISCOVERY,
    "solution discovery": STATUS_SOLUTION_DISCOVERY,
    "build": STATUS_BUILD,
    "beta": STATUS_BETA,
    "live": STATUS_LIVE,
    "09 live": STATUS_LIVE,
    "wont do": STATUS_WONT_DO,
    "won't do": STATUS_WONT_DO,
}

# =============================================================================
# Health Configuration
# =============================================================================
HEALTH_ON_TRACK = "On Track"
HEALTH_AT_RISK = "At Risk"
HEALTH_OFF_TRACK = "Off Track"
HEALTH_ON_HOLD = "On Hold"
HEALTH_MYSTERY = "Mystery"
HEALTH_COMPLETE = "Complete"
HEALTH_UNKNOWN = "Unknown"

HEALTH_DISPLAY_ORDER: Sequence[str] = (
    HEALTH_ON_TRACK,
    HEALTH_AT_RISK,
    HEALTH_OFF_TRACK,
    HEALTH_ON_HOLD,
    HEALTH_MYSTERY,
    HEALTH_COMPLETE,
    HEALTH_UNKNOWN,
)

RISK_HEALTH_VALUES: frozenset[str] = frozenset({HEALTH_AT_RISK, HEALTH_OFF_TRACK})

HEALTH_EMOJI: dict[str, str] = {
    HEALTH_ON_TRACK: "🟢",
    HEALTH_AT_RISK: "🟡",
    HEALTH_OFF_TRACK: "🔴",
    HEALTH_ON_HOLD: "⏸️",
    HEALTH_COMPLETE: "✅",
    HEALTH_MYSTERY: "🟣",
    HEALTH_UNKNOWN: "⚪️",
}

# =============================================================================
# Jira Custom Field IDs
# =============================================================================
FIELD_IDS = {
    "health": "customfield_10238",
    "archived_on": "customfield_10456",
    "discovery_complexity": "customfield_10477",
}

# Changelog item "field" names that carry each tracked field
HEALTH_FIELD_NAMES: frozenset[str] = frozenset({"health", FIELD_IDS["health"]})
ASSIGNEE_FIELD_NAMES: frozenset[str] = frozenset({"assignee"})
STATUS_FIELD_NAMES: frozenset[str] = frozenset({"status"})

# Canonical field list for Jira issue searches
JIRA_FETCH_BASE_FIELDS = [
    "summary",
    "created",
    "updated",
    "assignee",
    "status",
    "labels",
    FIELD_IDS["health"],
    FIELD_IDS["archived_on"],
    FIELD_IDS["discovery_complexity"],
]

# =============================================================================
# Fetch / Batch Tuning
# =============================================================================
# Jira Cloud allows roughly 500 requests per 5 minute window per user.
RATE_LIMIT_MAX_REQUESTS = 500
RATE_LIMIT_WINDOW_SECONDS = 300.0
CHANGELOG_PAGE_SIZE = 100
CHANGELOG_MAX_PAGES = 50

FETCH_MAX_RETRIES = 3
FETCH_RETRY_BACKOFF_SECONDS = 1.0

# Threads because the jira client is synchronous and fetches are I/O bound.
CYCLE_BATCH_MAX_WORKERS = 8
CYCLE_BATCH_MIN_PARALLEL = 4  # below this, stay sequential to reduce overhead

COMPLEXITY_NOT_SET = "Not Set"
OVERLOADED_PROJECT_COUNT = 6


@dataclass(frozen=True, slots=True)
class WorkflowConfig:
    """Pipeline taxonomy consumed by the cycle engine.

    Every algorithm takes one of these instead of reading status literals, so
    another board with a different pipeline only needs a different config.
    """

    discovery_statuses: tuple[str, ...] = tuple(DISCOVERY_STATUSES)
    terminal_statuses: Mapping[str, str] = field(default_factory=lambda: dict(TERMINAL_STATUSES))
    inactive_statuses: frozenset[str] = INACTIVE_STATUSES
    active_statuses: frozenset[str] = ACTIVE_STATUSES
    on_hold_health: str = HEALTH_ON_HOLD
    risk_health_values: frozenset[str] = RISK_HEALTH_VALUES
    status_aliases: Mapping[str, str] = field(default_factory=lambda: dict(STATUS_ALIASES))
    status_order: tuple[str, ...] = tuple(STATUS_DISPLAY_ORDER)


DEFAULT_WORKFLOW = WorkflowConfig()


@dataclass(slots=True)
class AppSettings:
    timezone: str = TIMEZONE
    project_key: str = DEFAULT_PROJECT_KEY
    max_workers: int = CYCLE_BATCH_MAX_WORKERS
    max_retries: int = FETCH_MAX_RETRIES


SETTINGS = AppSettings()
