"""Domain data models for change events, issue snapshots, and discovery cycles."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import pandas as pd


class ChangeField(str, Enum):
    STATUS = "status"
    HEALTH = "health"
    ASSIGNEE = "assignee"


class EndClassification(str, Enum):
    STILL_IN_DISCOVERY = "Still in Discovery"
    NO_DISCOVERY = "No Discovery"
    DIRECT_TO_BUILD = "Direct to Build"
    BUILD_TRANSITION = "Build Transition"
    BETA = "Beta"
    LIVE = "Live"
    WONT_DO = "Won't Do"


# Classifications that never count toward cohort statistics
INCOMPLETE_CLASSIFICATIONS: frozenset[EndClassification] = frozenset(
    {
        EndClassification.STILL_IN_DISCOVERY,
        EndClassification.NO_DISCOVERY,
        EndClassification.DIRECT_TO_BUILD,
    }
)


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    issue_key: str
    field: ChangeField
    from_value: str | None
    to_value: str | None
    timestamp: datetime
    author: str | None = None


@dataclass(frozen=True, slots=True)
class CreationState:
    status: str | None = None
    health: str | None = None
    assignee: str | None = None
    created: datetime | None = None

    def value_for(self, change_field: ChangeField) -> str | None:
        if change_field is ChangeField.STATUS:
            return self.status
        if change_field is ChangeField.HEALTH:
            return self.health
        return self.assignee


@dataclass(frozen=True, slots=True)
class ReconstructedState:
    status: str | None = None
    health: str | None = None
    assignee: str | None = None


@dataclass(slots=True)
class IssueSnapshot:
    key: str
    summary: str | None
    status: str | None
    health: str | None
    assignee: str | None
    created: datetime | None
    updated: datetime | None
    archived_at: datetime | None = None
    complexity: str | None = None
    labels: list[str] = field(default_factory=list)

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None


@dataclass(slots=True)
class IssueHistory:
    """Current snapshot of an issue plus its full, time-ordered event log."""

    snapshot: IssueSnapshot
    events: list[ChangeEvent] = field(default_factory=list)

    @property
    def key(self) -> str:
        return self.snapshot.key


@dataclass(frozen=True, slots=True)
class InactiveSpan:
    start: datetime
    end: datetime

    @property
    def duration(self):
        return self.end - self.start


@dataclass(slots=True)
class DiscoveryCycle:
    issue_key: str
    start_date: datetime | None
    end_date: datetime | None
    end_classification: EndClassification
    calendar_days: int | None = None
    active_days: int | None = None
    completion_period: str | None = None
    inactive_spans: list[InactiveSpan] = field(default_factory=list)
    complexity: str | None = None

    @property
    def is_completed(self) -> bool:
        return self.end_date is not None and self.end_classification not in INCOMPLETE_CLASSIFICATIONS

    def to_record(self) -> dict[str, Any]:
        """Flatten into a plain dict suitable for any key-value backend."""
        return {
            "issue_key": self.issue_key,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "end_classification": self.end_classification.value,
            "calendar_days": self.calendar_days,
            "active_days": self.active_days,
            "completion_period": self.completion_period,
            "inactive_spans": [
                {"start": _iso(span.start), "end": _iso(span.end)} for span in self.inactive_spans
            ],
            "complexity": self.complexity,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> DiscoveryCycle:
        return cls(
            issue_key=record["issue_key"],
            start_date=_parse(record.get("start_date")),
            end_date=_parse(record.get("end_date")),
            end_classification=EndClassification(record["end_classification"]),
            calendar_days=record.get("calendar_days"),
            active_days=record.get("active_days"),
            completion_period=record.get("completion_period"),
            inactive_spans=[
                InactiveSpan(_parse(span["start"]), _parse(span["end"]))
                for span in record.get("inactive_spans") or []
            ],
            complexity=record.get("complexity"),
        )


@dataclass(frozen=True, slots=True)
class CohortStats:
    min: float
    q1: float
    median: float
    q3: float
    max: float


@dataclass(slots=True)
class CohortBucket:
    key: str
    values: list[int]
    size: int
    stats: CohortStats
    outliers: list[int] = field(default_factory=list)

    @property
    def inliers(self) -> list[int]:
        excluded = list(self.outliers)
        kept: list[int] = []
        for value in self.values:
            if value in excluded:
                excluded.remove(value)
                continue
            kept.append(value)
        return kept


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def _parse(value) -> datetime | None:
    if not value:
        return None
    ts = pd.to_datetime(value, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return ts.to_pydatetime()
