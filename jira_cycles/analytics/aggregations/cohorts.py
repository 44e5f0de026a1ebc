"""Cohort aggregations over cached discovery cycles (box-plot statistics)."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Collection, Iterable

import numpy as np
import pandas as pd

from jira_cycles.analytics.metrics.periods import quarter_sort_key
from jira_cycles.core.config import COMPLEXITY_NOT_SET
from jira_cycles.core.models import CohortBucket, CohortStats, DiscoveryCycle

BucketKeyFn = Callable[[DiscoveryCycle], str | None]
METRICS = ("calendar", "active")


def by_completion_quarter(cycle: DiscoveryCycle) -> str | None:
    return cycle.completion_period


def by_complexity(default: str = COMPLEXITY_NOT_SET) -> BucketKeyFn:
    def _key(cycle: DiscoveryCycle) -> str:
        return cycle.complexity or default

    return _key


def box_plot_stats(values: Iterable[float]) -> tuple[CohortStats, list]:
    """Quartiles by linear interpolation plus 1.5×IQR outliers.

    ``min``/``max`` are whisker ends, taken from the non-outlier values.
    """
    data = np.sort(np.asarray(list(values), dtype=float))
    if data.size == 0:
        return CohortStats(min=0, q1=0, median=0, q3=0, max=0), []
    q1, median, q3 = np.percentile(data, [25, 50, 75], method="linear")
    iqr = q3 - q1
    lower = q1 - 1.5 * iqr
    upper = q3 + 1.5 * iqr
    mask = (data < lower) | (data > upper)
    inliers = data[~mask]
    outliers = [v.item() for v in data[mask]]
    stats = CohortStats(
        min=float(inliers.min()),
        q1=float(q1),
        median=float(median),
        q3=float(q3),
        max=float(inliers.max()),
    )
    return stats, outliers


def _metric_value(cycle: DiscoveryCycle, metric: str) -> int | None:
    return cycle.active_days if metric == "active" else cycle.calendar_days


def aggregate(
    cycles: Iterable[DiscoveryCycle],
    bucket_key_fn: BucketKeyFn,
    metric: str = "calendar",
    *,
    excluded: Collection[str] = (),
    sort_key: Callable[[str], object] | None = None,
) -> dict[str, CohortBucket]:
    """Bucket completed cycles and summarize each bucket.

    Parameters
    ----------
    cycles : iterable of DiscoveryCycle
        Typically the full cache contents.
    bucket_key_fn : callable
        Maps a cycle to its bucket key; ``None`` drops the cycle.
    metric : {"calendar", "active"}
        Which day count to summarize.
    excluded : collection of str
        Issue keys left out of every cohort.
    sort_key : callable, optional
        Ordering of the returned keys (default: plain sort).

    Returns
    -------
    dict[str, CohortBucket]
        Buckets in sorted key order.
    """
    if metric not in METRICS:
        raise ValueError(f"Unknown metric {metric!r}; expected one of {METRICS}")
    excluded_keys = set(excluded)
    grouped: defaultdict[str, list[int]] = defaultdict(list)
    for cycle in cycles:
        if cycle.issue_key in excluded_keys or not cycle.is_completed:
            continue
        value = _metric_value(cycle, metric)
        if value is None:
            continue
        key = bucket_key_fn(cycle)
        if key is None:
            continue
        grouped[key].append(int(value))

    out: dict[str, CohortBucket] = {}
    for key in sorted(grouped, key=sort_key):
        values = sorted(grouped[key])
        stats, outliers = box_plot_stats(values)
        out[key] = CohortBucket(
            key=key,
            values=values,
            size=len(values),
            stats=stats,
            outliers=[int(v) for v in outliers],
        )
    return out


def quarter_cohorts(
    cycles: Iterable[DiscoveryCycle],
    metric: str = "calendar",
    *,
    excluded: Collection[str] = (),
) -> dict[str, CohortBucket]:
    return aggregate(cycles, by_completion_quarter, metric, excluded=excluded, sort_key=quarter_sort_key)


def complexity_cohorts(
    cycles: Iterable[DiscoveryCycle],
    metric: str = "calendar",
    *,
    excluded: Collection[str] = (),
) -> dict[str, CohortBucket]:
    return aggregate(cycles, by_complexity(), metric, excluded=excluded)


def cohorts_to_frame(buckets: dict[str, CohortBucket]) -> pd.DataFrame:
    rows = [
        {
            "cohort": b.key,
            "size": b.size,
            "min": b.stats.min,
            "q1": b.stats.q1,
            "median": b.stats.median,
            "q3": b.stats.q3,
            "max": b.stats.max,
            "outliers": len(b.outliers),
        }
        for b in buckets.values()
    ]
    return pd.DataFrame(rows, columns=["cohort", "size", "min", "q1", "median", "q3", "max", "outliers"])
