"""
Per-user cache of the dashboard views.

Each view is stored as a JSON string under ``<prefix>:<identity>`` with a
TTL. The store is best-effort: when the backend cannot be reached every read
is a miss and every write or delete is skipped, so callers always fall back
to fetching from the platforms.
"""

from __future__ import annotations

import json
import logging

from django.conf import settings
from django.core.cache import caches
from django.core.cache.backends.base import BaseCache
from django.core.serializers.json import DjangoJSONEncoder

logger = logging.getLogger(__name__)

STATS = "stats"
PRACTICE = "practice"
ACTIVITY = "activity"

VIEW_KEY_PREFIXES = {
    STATS: "userStats",
    PRACTICE: "practiceProblems",
    ACTIVITY: "activityData",
}

VIEW_TTL_SETTINGS = {
    STATS: ("DASHBOARD_STATS_TTL", 300),
    PRACTICE: ("DASHBOARD_PRACTICE_TTL", 300),
    ACTIVITY: ("DASHBOARD_ACTIVITY_TTL", 600),
}

LEETCODE_TOTALS_KEY = "leetcodeTotals"


def view_cache_key(view: str, identity: str) -> str:
    return f"{VIEW_KEY_PREFIXES[view]}:{identity}"


def view_ttl(view: str) -> int:
    name, default = VIEW_TTL_SETTINGS[view]
    return int(getattr(settings, name, default))


def leetcode_totals_ttl() -> int:
    return int(getattr(settings, "LEETCODE_TOTALS_TTL", 24 * 3600))


class DashboardCache:
    """
    Wraps a Django cache backend. Build one per process with
    ``from_settings()`` at startup and call ``close()`` at shutdown.
    """

    def __init__(self, backend: BaseCache):
        self._backend = backend

    @classmethod
    def from_settings(cls, alias: str | None = None) -> "DashboardCache":
        alias = alias or getattr(settings, "DASHBOARD_CACHE_ALIAS", "dashboard")
        return cls(caches.create_connection(alias))

    @property
    def backend(self) -> BaseCache:
        return self._backend

    def get(self, key: str):
        try:
            raw = self._backend.get(key)
        except Exception:
            logger.warning("Cache read failed for %s; treating as a miss.", key, exc_info=True)
            return None

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding undecodable cache entry %s.", key)
            self.invalidate(key)
            return None

    def set(self, key: str, value, ttl: int) -> bool:
        payload = json.dumps(value, cls=DjangoJSONEncoder)
        try:
            self._backend.set(key, payload, timeout=ttl)
        except Exception:
            logger.warning("Cache write failed for %s; serving uncached.", key, exc_info=True)
            return False
        return True

    def invalidate(self, key: str) -> bool:
        try:
            self._backend.delete(key)
        except Exception:
            logger.warning("Cache delete failed for %s.", key, exc_info=True)
            return False
        return True

    def invalidate_identity(self, identity: str) -> list[str]:
        """
        Drops the three views of one user. Each delete is attempted even if an
        earlier one failed; returns the keys that could not be removed.
        """
        failed = []
        for view in VIEW_KEY_PREFIXES:
            key = view_cache_key(view, identity)
            if not self.invalidate(key):
                failed.append(key)
        if failed:
            logger.error("Could not invalidate %s for identity %s.", ", ".join(failed), identity)
        return failed

    def close(self) -> None:
        try:
            self._backend.close()
        except Exception:
            logger.exception("Failed to close the dashboard cache backend.")
