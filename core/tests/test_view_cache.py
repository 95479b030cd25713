import uuid
from unittest.mock import MagicMock, patch

from django.core.cache.backends.locmem import LocMemCache
from django.test import SimpleTestCase, override_settings

from core.services.view_cache import (
    ACTIVITY,
    PRACTICE,
    STATS,
    DashboardCache,
    view_cache_key,
    view_ttl,
)


def _locmem_cache():
    return DashboardCache(LocMemCache(f"view-cache-{uuid.uuid4()}", {}))


class _Clock:
    def __init__(self, now: float):
        self.now = now

    def __call__(self):
        return self.now


class DashboardCacheTests(SimpleTestCase):
    def test_keys_and_default_ttls(self):
        self.assertEqual(view_cache_key(STATS, "42"), "userStats:42")
        self.assertEqual(view_cache_key(PRACTICE, "42"), "practiceProblems:42")
        self.assertEqual(view_cache_key(ACTIVITY, "42"), "activityData:42")
        self.assertEqual(view_ttl(STATS), 300)
        self.assertEqual(view_ttl(PRACTICE), 300)
        self.assertEqual(view_ttl(ACTIVITY), 600)

    @override_settings(DASHBOARD_ACTIVITY_TTL=60)
    def test_ttl_comes_from_settings(self):
        self.assertEqual(view_ttl(ACTIVITY), 60)

    def test_value_is_served_until_ttl_elapses(self):
        cache = _locmem_cache()
        clock = _Clock(1_000_000.0)
        with patch("time.time", new=clock):
            self.assertTrue(cache.set("userStats:1", {"codeforcesRating": 1500}, 300))

            clock.now += 299
            self.assertEqual(cache.get("userStats:1"), {"codeforcesRating": 1500})

            clock.now += 1
            self.assertIsNone(cache.get("userStats:1"))

    def test_values_are_stored_as_json(self):
        cache = _locmem_cache()
        cache.set("activityData:1", {"activityData": [{"timestamp": 86400, "count": 2}]}, 600)

        self.assertEqual(
            cache.backend.get("activityData:1"),
            '{"activityData": [{"timestamp": 86400, "count": 2}]}',
        )

    def test_undecodable_entry_is_a_miss_and_dropped(self):
        cache = _locmem_cache()
        cache.backend.set("userStats:1", "{not json", 300)

        with self.assertLogs("core.services.view_cache", level="WARNING"):
            self.assertIsNone(cache.get("userStats:1"))
        self.assertIsNone(cache.backend.get("userStats:1"))

    def test_invalidate_identity_clears_the_three_views(self):
        cache = _locmem_cache()
        for view in (STATS, PRACTICE, ACTIVITY):
            cache.set(view_cache_key(view, "7"), {"view": view}, 300)
        cache.set(view_cache_key(STATS, "8"), {"view": "other user"}, 300)

        self.assertEqual(cache.invalidate_identity("7"), [])

        for view in (STATS, PRACTICE, ACTIVITY):
            self.assertIsNone(cache.get(view_cache_key(view, "7")))
        self.assertEqual(cache.get(view_cache_key(STATS, "8")), {"view": "other user"})

    def test_failed_delete_does_not_block_the_others(self):
        backend = MagicMock()
        backend.delete.side_effect = [None, ConnectionError("redis down"), None]
        cache = DashboardCache(backend)

        with self.assertLogs("core.services.view_cache", level="WARNING"):
            failed = cache.invalidate_identity("7")

        self.assertEqual(failed, ["practiceProblems:7"])
        self.assertEqual(
            [call.args[0] for call in backend.delete.call_args_list],
            ["userStats:7", "practiceProblems:7", "activityData:7"],
        )

    def test_unreachable_store_degrades_to_miss(self):
        backend = MagicMock()
        backend.get.side_effect = ConnectionError("redis down")
        backend.set.side_effect = ConnectionError("redis down")
        cache = DashboardCache(backend)

        with self.assertLogs("core.services.view_cache", level="WARNING"):
            self.assertIsNone(cache.get("userStats:1"))
            self.assertFalse(cache.set("userStats:1", {"a": 1}, 300))

    def test_close_swallows_backend_errors(self):
        backend = MagicMock()
        backend.close.side_effect = ConnectionError("already closed")

        with self.assertLogs("core.services.view_cache", level="ERROR"):
            DashboardCache(backend).close()
        backend.close.assert_called_once_with()

    def test_app_builds_one_client_from_settings(self):
        from django.apps import apps

        cache = apps.get_app_config("core").dashboard_cache
        self.assertIsInstance(cache, DashboardCache)
        self.assertIsInstance(cache.backend, LocMemCache)
