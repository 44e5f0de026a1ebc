"""Keyed, full-replace cache of derived discovery cycles.

The storage engine is injected as any ``MutableMapping[str, dict]`` (a plain
dict by default, a ``shelve`` or database-backed mapping in production).
Records are stored flattened (``DiscoveryCycle.to_record``) so every upsert
replaces the whole record and nothing from a previous derivation survives.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import MutableMapping
from typing import Any

from .errors import CacheWriteFailure
from .models import DiscoveryCycle

logger = logging.getLogger(__name__)


class CycleCache:
    def __init__(self, backend: MutableMapping[str, dict[str, Any]] | None = None):
        self._backend: MutableMapping[str, dict[str, Any]] = backend if backend is not None else {}
        self._excluded: set[str] = set()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, issue_key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(issue_key)
            if lock is None:
                lock = self._locks[issue_key] = threading.Lock()
            return lock

    # ------------------ Cycle Records ------------------
    def upsert(self, issue_key: str, cycle: DiscoveryCycle) -> bool:
        """Store ``cycle`` under ``issue_key``, replacing any previous record.

        Returns True when the stored record changed. Backend errors are
        re-raised as :class:`CacheWriteFailure`.
        """
        record = cycle.to_record()
        record["issue_key"] = issue_key
        with self._lock_for(issue_key):
            try:
                previous = self._backend.get(issue_key)
                if previous == record:
                    return False
                self._backend[issue_key] = record
            except Exception as exc:
                raise CacheWriteFailure(issue_key, f"Failed to write cycle for {issue_key}: {exc}") from exc
        logger.debug("Cached cycle %s (%s)", issue_key, cycle.end_classification.value)
        return True

    def get(self, issue_key: str) -> DiscoveryCycle | None:
        record = self._backend.get(issue_key)
        if record is None:
            return None
        return DiscoveryCycle.from_record(record)

    def delete(self, issue_key: str) -> bool:
        with self._lock_for(issue_key):
            try:
                if issue_key not in self._backend:
                    return False
                del self._backend[issue_key]
            except KeyError:
                return False
            except Exception as exc:
                raise CacheWriteFailure(issue_key, f"Failed to delete cycle for {issue_key}: {exc}") from exc
        return True

    def list_all(self) -> list[DiscoveryCycle]:
        """Every cached cycle, ordered by issue key."""
        return [DiscoveryCycle.from_record(self._backend[key]) for key in sorted(list(self._backend.keys()))]

    def clear(self) -> None:
        """Remove every record; waits for in-flight upserts and drops their locks."""
        with self._locks_guard:
            held = list(self._locks.values())
            for lock in held:
                lock.acquire()
            try:
                self._backend.clear()
            except Exception as exc:
                raise CacheWriteFailure(None, f"Failed to clear cycle cache: {exc}") from exc
            finally:
                for lock in held:
                    lock.release()
                self._locks.clear()
        logger.info("Cleared cycle cache")

    def __len__(self) -> int:
        return len(self._backend)

    def __contains__(self, issue_key: object) -> bool:
        return issue_key in self._backend

    # ------------------ Exclusions ------------------
    def exclude(self, issue_key: str) -> None:
        self._excluded.add(issue_key)

    def include(self, issue_key: str) -> None:
        self._excluded.discard(issue_key)

    def excluded_keys(self) -> frozenset[str]:
        return frozenset(self._excluded)

    def toggle_exclusion(self, issue_key: str) -> bool:
        """Flip an issue's exclusion; returns True when it is now excluded."""
        if issue_key in self._excluded:
            self._excluded.discard(issue_key)
            return False
        self._excluded.add(issue_key)
        return True
