"""Jira API client wrapper (REST v3 search + changelog pagination, rate limited)."""

from __future__ import annotations

import hashlib
import json
import threading
import time
from collections import deque
from collections.abc import Callable
from typing import Any

from jira import JIRA

from .config import (
    CHANGELOG_MAX_PAGES,
    CHANGELOG_PAGE_SIZE,
    RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
)


class RateLimiter:
    """Sliding-window limiter: at most ``max_requests`` per ``window`` seconds."""

    def __init__(
        self,
        max_requests: int = RATE_LIMIT_MAX_REQUESTS,
        window: float = RATE_LIMIT_WINDOW_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._sleep = sleep
        self._requests: deque[float] = deque()
        self._lock = threading.Lock()

    def wait_if_needed(self) -> float:
        """Block until a request slot is free, record it, return seconds waited."""
        waited = 0.0
        with self._lock:
            now = self._clock()
            while self._requests and now - self._requests[0] >= self.window:
                self._requests.popleft()
            if len(self._requests) >= self.max_requests:
                waited = self.window - (now - self._requests[0])
                if waited > 0:
                    self._sleep(waited)
                now = self._clock()
                self._requests.popleft()
            self._requests.append(now)
        return max(waited, 0.0)


class JiraAPI:
    def __init__(self, server: str, email: str, token: str, *, rate_limiter: RateLimiter | None = None):
        self.server = server.rstrip("/")
        self.client = JIRA(
            basic_auth=(email, token), options={"server": self.server, "rest_api_version": "3"}
        )
        self.rate_limiter = rate_limiter or RateLimiter()
        # Simple in-memory cache: {(hash): (timestamp, data)}
        self._cache: dict[str, tuple[float, list]] = {}
        self._cache_ttl = 300.0  # seconds

    def clear_cache(self) -> None:
        """Reset the in-memory search cache."""
        cache = getattr(self, "_cache", None)
        if isinstance(cache, dict):
            cache.clear()

    def _cache_key(self, jql: str, fields, expand, page_size: int) -> str:
        payload = {
            "jql": jql,
            "fields": fields,
            "expand": expand,
            "page_size": page_size,
        }
        return hashlib.sha256(json.dumps(payload, sort_keys=True).encode()).hexdigest()

    def _session(self):
        session = getattr(self.client, "_session", None)
        if session is None:
            raise RuntimeError("JIRA session unavailable")
        return session

    def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        limiter = getattr(self, "rate_limiter", None)
        if limiter is not None:
            limiter.wait_if_needed()
        resp = self._session().get(url, params=params)
        if resp.status_code >= 400:
            raise RuntimeError(f"Jira request failed {resp.status_code}: {resp.text[:200]}")
        return resp.json()

    def search_enhanced(
        self,
        jql: str,
        fields: list[str] | None = None,
        expand: list[str] | None = None,
        page_size: int = 1000,
    ) -> list[dict[str, Any]]:
        url = f"{self.server}/rest/api/3/search/jql"
        # Cache check
        key = self._cache_key(jql, fields, expand, page_size)
        now = time.time()
        cached = self._cache.get(key)
        if cached and (now - cached[0]) < self._cache_ttl:
            return cached[1]
        params = {"jql": jql, "maxResults": page_size}
        if fields:
            params["fields"] = ",".join(fields)
        if expand:
            params["expand"] = ",".join(expand)
        out: list[dict[str, Any]] = []
        seen: set[str] = set()
        token = None
        while True:
            qp = dict(params)
            if token:
                qp["nextPageToken"] = token
            data = self._get_json(url, qp)
            for issue in data.get("issues", []):
                issue_key = issue.get("key")
                if issue_key in seen:
                    continue
                seen.add(issue_key)
                out.append(issue)
            token = data.get("nextPageToken")
            if not token or data.get("isLast") is True:
                break
        # Store in cache
        self._cache[key] = (now, out)
        return out

    def fetch_changelog(
        self,
        issue_key: str,
        page_size: int = CHANGELOG_PAGE_SIZE,
        max_pages: int = CHANGELOG_MAX_PAGES,
    ) -> list[dict[str, Any]]:
        """Return every changelog history of ``issue_key``, oldest page first."""
        url = f"{self.server}/rest/api/3/issue/{issue_key}/changelog"
        histories: list[dict[str, Any]] = []
        start_at = 0
        for _ in range(max_pages):
            data = self._get_json(url, {"startAt": start_at, "maxResults": page_size})
            values = data.get("values")
            if not isinstance(values, list):
                break
            histories.extend(values)
            if data.get("isLast") is True or len(values) < page_size:
                break
            start_at += page_size
        return histories

    def fetch_issue_raw(self, issue_key: str, fields: list[str] | None = None) -> dict[str, Any]:
        """Current-state snapshot of one issue (no changelog)."""
        params: dict[str, Any] = {}
        if fields:
            params["fields"] = ",".join(fields)
        data = self._get_json(f"{self.server}/rest/api/3/issue/{issue_key}", params)
        if not isinstance(data, dict) or not data.get("key"):
            raise RuntimeError(f"Unexpected issue payload for {issue_key}: {type(data)!r}")
        return data
