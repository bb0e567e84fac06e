"""Memoization of analytics reports.

Each (user, tenant) owns one slot holding the fingerprint of the inputs the
report was computed from. A lookup with the same fingerprint returns the
stored report; any change to the quiz, mastery or progress collections
produces a new fingerprint and the report is recomputed. Slots are evicted
least-recently-used once max_entries is reached.
"""
import hashlib
import json
import logging
from collections import OrderedDict
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Dict, Iterable, Optional, Tuple
from zoneinfo import ZoneInfo
from certlab.config import settings
from certlab.services.dates import to_local

logger = logging.getLogger(__name__)

QUIZ_FIELDS = (
    "id", "completed_at", "started_at", "score", "correct_answers",
    "total_questions", "question_count", "is_passing",
)
MASTERY_FIELDS = ("category_id", "subcategory_id", "rolling_average")
PROGRESS_FIELDS = ("category_id", "questions_completed")


def _snapshot(records: Optional[Iterable], fields: Tuple[str, ...]) -> list:
    rows = [[getattr(record, field, None) for field in fields] for record in (records or [])]
    return sorted(rows, key=lambda row: json.dumps(row, default=str))


def fingerprint_inputs(
    quizzes: Optional[Iterable] = None,
    mastery_scores: Optional[Iterable] = None,
    user_progress: Optional[Iterable] = None,
    categories: Optional[Dict[int, str]] = None,
    now: Optional[datetime] = None,
    tz_name: str = "UTC"
) -> str:
    """
    Hash the analytics inputs into a cache fingerprint.

    Record order does not matter. The reference time participates at local
    hour granularity in tz_name, so a new local day always yields a new
    fingerprint (also in zones with half-hour offsets).
    """
    key_data = {
        "quizzes": _snapshot(quizzes, QUIZ_FIELDS),
        "mastery": _snapshot(mastery_scores, MASTERY_FIELDS),
        "progress": _snapshot(user_progress, PROGRESS_FIELDS),
        "categories": sorted((categories or {}).items()),
        "as_of": to_local(now, ZoneInfo(tz_name)).strftime("%Y-%m-%dT%H") if now else None,
        "tz": tz_name,
    }
    key_str = json.dumps(key_data, sort_keys=True, default=str)
    return hashlib.md5(key_str.encode()).hexdigest()


class AnalyticsCache:
    """Thread-safe last-input cache for analytics reports."""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max(1, max_entries)
        self._slots: "OrderedDict[Tuple[str, int], Tuple[str, Any]]" = OrderedDict()
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    def get(self, user_id: str, tenant_id: int, fingerprint: str) -> Optional[Any]:
        """Stored report if it was computed from the same fingerprint."""
        key = (user_id, tenant_id)
        with self._lock:
            slot = self._slots.get(key)
            if slot is None or slot[0] != fingerprint:
                self.misses += 1
                return None
            self._slots.move_to_end(key)
            self.hits += 1
            return slot[1]

    def set(self, user_id: str, tenant_id: int, fingerprint: str, report: Any) -> None:
        key = (user_id, tenant_id)
        with self._lock:
            self._slots[key] = (fingerprint, report)
            self._slots.move_to_end(key)
            while len(self._slots) > self.max_entries:
                evicted, _ = self._slots.popitem(last=False)
                logger.debug(f"Evicted analytics cache slot for {evicted}")

    def get_or_compute(
        self,
        user_id: str,
        tenant_id: int,
        fingerprint: str,
        factory: Callable[[], Any]
    ) -> Any:
        """
        Return the cached report or compute, store and return a new one.

        Args:
            user_id: Owner of the report
            tenant_id: Tenant of the report
            fingerprint: Result of fingerprint_inputs for the current inputs
            factory: Zero-argument callable producing the report
        """
        report = self.get(user_id, tenant_id, fingerprint)
        if report is not None:
            return report

        report = factory()
        self.set(user_id, tenant_id, fingerprint, report)
        return report

    def invalidate(self, user_id: str, tenant_id: int) -> bool:
        """Drop a user's slot. Returns True if one existed."""
        with self._lock:
            return self._slots.pop((user_id, tenant_id), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._slots.clear()
            self.hits = 0
            self.misses = 0

    def stats(self) -> dict:
        with self._lock:
            return {
                "entries": len(self._slots),
                "max_entries": self.max_entries,
                "hits": self.hits,
                "misses": self.misses,
            }


analytics_cache = AnalyticsCache(max_entries=settings.ANALYTICS_CACHE_MAX_ENTRIES)
"""Process-wide cache used by the analytics router."""
