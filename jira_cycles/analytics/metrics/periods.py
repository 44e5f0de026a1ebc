"""Calendar period labelling (quarters, weeks) in the configured timezone."""

from __future__ import annotations

import re
from datetime import datetime, timedelta

import pandas as pd
import pytz

from jira_cycles.core.config import TIMEZONE

_QUARTER_RE = re.compile(r"^Q([1-4])_(\d{4})$")


def _localize(value: datetime, tz) -> datetime:
    zone = pytz.timezone(tz) if isinstance(tz, str) else tz
    if value.tzinfo is None:
        return zone.localize(value)
    return value.astimezone(zone)


def quarter_label(value: datetime, tz=TIMEZONE) -> str:
    """Return the completion quarter of ``value`` as ``Q{n}_{year}``.

    >>> from datetime import datetime, timezone
    >>> quarter_label(datetime(2025, 4, 1, 12, tzinfo=timezone.utc), "UTC")
    'Q2_2025'
    """
    local = _localize(value, tz)
    return f"Q{(local.month - 1) // 3 + 1}_{local.year}"


def quarter_sort_key(label: str) -> tuple:
    """Chronological sort key for quarter labels; unknown labels sort last."""
    match = _QUARTER_RE.match(str(label))
    if not match:
        return (1, 0, 0, str(label))
    return (0, int(match.group(2)), int(match.group(1)), "")


def week_starts(start: datetime, end: datetime, tz=TIMEZONE) -> list[datetime]:
    """Mondays (local midnight) from the week containing ``start`` through ``end``."""
    zone = pytz.timezone(tz) if isinstance(tz, str) else tz
    local_start = _localize(start, zone)
    local_end = _localize(end, zone)
    monday = local_start.date() - timedelta(days=local_start.weekday())
    out: list[datetime] = []
    for day in pd.date_range(monday, local_end.date(), freq="7D"):
        out.append(zone.localize(datetime(day.year, day.month, day.day)))
    return out
