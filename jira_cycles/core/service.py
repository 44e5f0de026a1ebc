"""CycleService: orchestrates fetching, cycle derivation, caching, and cohorts."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import pandas as pd
import pytz

from jira_cycles.analytics.aggregations.assignee import issues_active_for_member
from jira_cycles.analytics.aggregations.cohorts import complexity_cohorts, quarter_cohorts
from jira_cycles.analytics.metrics.cycle import build_discovery_cycle

from .cache import CycleCache
from .config import (
    CYCLE_BATCH_MIN_PARALLEL,
    DEFAULT_WORKFLOW,
    FETCH_RETRY_BACKOFF_SECONDS,
    JIRA_FETCH_BASE_FIELDS,
    SETTINGS,
    AppSettings,
    WorkflowConfig,
)
from .errors import CacheWriteFailure, ExternalFetchFailure
from .jira_client import JiraAPI
from .mappers import build_issue_history, cycles_to_dataframe
from .models import CohortBucket, DiscoveryCycle, IssueHistory

DEFAULT_FIELDS: Sequence[str] = tuple(JIRA_FETCH_BASE_FIELDS)
ProgressCallback = Callable[[str, int | None, int | None], None]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BatchReport:
    total: int = 0
    processed: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    cancelled: bool = False


class CycleService:
    def __init__(
        self,
        api: JiraAPI,
        cache: CycleCache,
        workflow: WorkflowConfig = DEFAULT_WORKFLOW,
        *,
        settings: AppSettings = SETTINGS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api = api
        self.cache = cache
        self.workflow = workflow
        self.settings = settings
        self._tz = pytz.timezone(settings.timezone)
        self._sleep = sleep

    # ------------------ Fetch Methods ------------------
    def fetch_issues(
        self,
        project_key: str | None = None,
        *,
        jql: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch every issue of the project (all statuses, archived included)."""
        project = project_key or self.settings.project_key
        query = jql or f"project = {project} ORDER BY key ASC"
        if progress:
            progress(f"Querying issues for {project}", None, None)
        return self._with_retries(
            None,
            lambda: self.api.search_enhanced(query, fields=list(DEFAULT_FIELDS)),
        )

    def fetch_issue(self, issue_key: str) -> dict[str, Any]:
        """Fetch the current-state snapshot of a single issue."""
        return self._with_retries(
            issue_key,
            lambda: self.api.fetch_issue_raw(issue_key, fields=list(DEFAULT_FIELDS)),
        )

    def fetch_history(self, raw_issue: dict[str, Any]) -> IssueHistory:
        """Fetch the full paginated changelog of one issue and normalize it."""
        key = raw_issue.get("key")
        histories = self._with_retries(key, lambda: self.api.fetch_changelog(key))
        return build_issue_history(raw_issue, histories, self.workflow)

    def load_histories(
        self,
        raw_issues: Iterable[dict[str, Any]],
        *,
        progress: ProgressCallback | None = None,
    ) -> list[IssueHistory]:
        """Histories for reporting queries; issues that fail to fetch are skipped."""
        work = [issue for issue in raw_issues if issue.get("key")]
        out: list[IssueHistory] = []
        for idx, raw in enumerate(work, start=1):
            try:
                out.append(self.fetch_history(raw))
            except ExternalFetchFailure as exc:
                logger.warning("Skipping %s: %s", raw.get("key"), exc)
            if progress:
                progress("Loading change history", idx, len(work))
        return out

    def _with_retries(self, issue_key: str | None, func: Callable[[], Any]) -> Any:
        attempts = max(1, self.settings.max_retries)
        last_exc: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                return func()
            except Exception as exc:
                last_exc = exc
                logger.warning(
                    "Fetch attempt %s/%s failed for %s: %s", attempt, attempts, issue_key or "issue list", exc
                )
                if attempt < attempts:
                    self._sleep(FETCH_RETRY_BACKOFF_SECONDS * (2 ** (attempt - 1)))
        raise ExternalFetchFailure(
            issue_key,
            f"Giving up on {issue_key or 'issue list'} after {attempts} attempts: {last_exc}",
            attempts=attempts,
        ) from last_exc

    # ------------------ Derivation Pipeline ------------------
    def derive_cycle(self, history: IssueHistory, *, as_of: datetime | None = None) -> DiscoveryCycle:
        return build_discovery_cycle(history, self.workflow, tz=self._tz, as_of=as_of)

    def process_issue(self, raw_issue: dict[str, Any], *, as_of: datetime | None = None) -> bool:
        """Fetch → detect → account → upsert for one issue; True when the cache changed."""
        history = self.fetch_history(raw_issue)
        cycle = self.derive_cycle(history, as_of=as_of)
        return self.cache.upsert(history.key, cycle)

    def refresh_issue(self, issue_key: str, *, as_of: datetime | None = None) -> DiscoveryCycle:
        """Re-fetch one issue from Jira, recompute its cycle and upsert it."""
        raw = self.fetch_issue(issue_key)
        self.process_issue(raw, as_of=as_of)
        return self.cache.get(raw["key"])

    def run_batch(
        self,
        raw_issues: Iterable[dict[str, Any]] | None = None,
        *,
        project_key: str | None = None,
        cancel: threading.Event | None = None,
        progress: ProgressCallback | None = None,
        as_of: datetime | None = None,
    ) -> BatchReport:
        """Recompute and cache cycles for many issues.

        Issues are independent: each failure is logged and recorded, leaving
        that issue's previous cache entry alone, and the batch continues.
        Setting ``cancel`` stops issues that have not started yet; records
        already upserted stay in the cache.
        """
        if raw_issues is None:
            raw_issues = self.fetch_issues(project_key, progress=progress)
        work = [issue for issue in raw_issues if issue.get("key")]
        report = BatchReport(total=len(work))
        if not work:
            return report

        def _task(raw: dict[str, Any]) -> tuple[str, str, str | None]:
            key = raw["key"]
            if cancel is not None and cancel.is_set():
                return key, "skipped", None
            try:
                changed = self.process_issue(raw, as_of=as_of)
            except ExternalFetchFailure as exc:
                logger.warning("Skipping %s, fetch failed: %s", key, exc)
                return key, "failed", str(exc)
            except CacheWriteFailure as exc:
                logger.warning("Cycle for %s not cached: %s", key, exc)
                return key, "failed", str(exc)
            except Exception as exc:
                logger.exception("Cycle derivation failed for %s", key)
                return key, "failed", f"{type(exc).__name__}: {exc}"
            return key, "changed" if changed else "unchanged", None

        def _record(result: tuple[str, str, str | None]) -> None:
            key, outcome, detail = result
            if outcome == "skipped":
                report.skipped.append(key)
                return
            if outcome == "failed":
                report.failed[key] = detail or "unknown error"
                return
            report.processed.append(key)
            if outcome == "changed":
                report.changed.append(key)

        if progress:
            progress("Deriving discovery cycles", 0, len(work))

        # Sequential short-circuit
        if len(work) < CYCLE_BATCH_MIN_PARALLEL or self.settings.max_workers <= 1:
            for idx, raw in enumerate(work, start=1):
                _record(_task(raw))
                if progress:
                    progress("Deriving discovery cycles", idx, len(work))
        else:
            completed = 0
            with ThreadPoolExecutor(max_workers=self.settings.max_workers) as pool:
                futures = [pool.submit(_task, raw) for raw in work]
                for fut in as_completed(futures):
                    _record(fut.result())
                    completed += 1
                    if progress:
                        progress("Deriving discovery cycles", completed, len(work))

        report.cancelled = bool(cancel is not None and cancel.is_set())
        report.processed.sort()
        report.changed.sort()
        report.skipped.sort()
        logger.info(
            "Cycle batch done: %s processed, %s changed, %s failed, %s skipped",
            len(report.processed),
            len(report.changed),
            len(report.failed),
            len(report.skipped),
        )
        return report

    def rebuild(self, *, project_key: str | None = None, progress: ProgressCallback | None = None) -> BatchReport:
        """Recompute every issue, then drop records for issues no longer in the project.

        Issues that fail during the rebuild keep their previous record, as in
        :meth:`run_batch`. Use ``cache.clear()`` for an unconditional wipe.
        """
        raw_issues = self.fetch_issues(project_key, progress=progress)
        report = self.run_batch(raw_issues, progress=progress)
        if report.cancelled:
            return report
        current = {issue.get("key") for issue in raw_issues}
        stale = [cycle.issue_key for cycle in self.cache.list_all() if cycle.issue_key not in current]
        for key in stale:
            self.cache.delete(key)
        if stale:
            logger.info("Dropped %s stale cycle records", len(stale))
        return report

    # ------------------ Cached Reads ------------------
    def cohorts(self, metric: str = "calendar", by: str = "quarter") -> dict[str, CohortBucket]:
        cycles = self.cache.list_all()
        excluded = self.cache.excluded_keys()
        if by == "quarter":
            return quarter_cohorts(cycles, metric, excluded=excluded)
        if by == "complexity":
            return complexity_cohorts(cycles, metric, excluded=excluded)
        raise ValueError(f"Unknown cohort grouping {by!r}; expected 'quarter' or 'complexity'")

    def cycle_frame(self) -> pd.DataFrame:
        return cycles_to_dataframe(self.cache.list_all())

    def active_issues_for_member(
        self,
        histories: Iterable[IssueHistory],
        member: str,
        instant: datetime,
    ) -> list[str]:
        return issues_active_for_member(histories, member, instant, self.workflow)
