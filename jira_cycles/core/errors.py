"""Failure types for the I/O edges of the cycle pipeline.

Missing change logs and ambiguous boundaries are not errors: they surface as
``No Discovery`` classifications and the first-qualifying-transition rule.
Only fetching and cache writes can fail.
"""

from __future__ import annotations


class ExternalFetchFailure(RuntimeError):
    """Issue data could not be fetched from Jira after bounded retries."""

    def __init__(self, issue_key: str | None, message: str, attempts: int = 1):
        self.issue_key = issue_key
        self.attempts = attempts
        super().__init__(message)


class CacheWriteFailure(RuntimeError):
    """The cycle cache backend rejected a write."""

    def __init__(self, issue_key: str | None, message: str):
        self.issue_key = issue_key
        super().__init__(message)
