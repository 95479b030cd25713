import random
import threading
import uuid
from unittest.mock import MagicMock

from django.core.cache.backends.locmem import LocMemCache
from django.test import SimpleTestCase

from core.services.dashboard import (
    FALLBACK_LEETCODE_TOTALS,
    NO_HANDLES_MESSAGE,
    DashboardService,
)
from core.services.errors import IdentityNotFound
from core.services.merge import NOT_ENOUGH_SUBMISSIONS_MESSAGE
from core.services.records import (
    CODEFORCES,
    LEETCODE,
    OTHER,
    AggregateFields,
    NormalizedSubmission,
    PlatformHandles,
)
from core.services.view_cache import LEETCODE_TOTALS_KEY, DashboardCache

DAY = 86400


class FakeClient:
    def __init__(self, platform, submissions=None, aggregate=None, error=None, totals=None, raises=None):
        self.platform = platform
        self.submissions = submissions or []
        self.aggregate = aggregate
        self.error = error
        self.totals = totals
        self.raises = raises
        self.calls = []

    def fetch_submissions(self, handle, limit=None):
        self.calls.append(("submissions", handle, limit))
        if self.raises:
            raise self.raises
        if self.error:
            return [], self.error
        return list(self.submissions), None

    def fetch_aggregate(self, handle):
        self.calls.append(("aggregate", handle))
        if self.raises:
            raise self.raises
        if self.error:
            return None, self.error
        return self.aggregate, None

    def fetch_problem_totals(self):
        self.calls.append(("totals",))
        if self.totals is None:
            return None, "listing unavailable"
        return dict(self.totals), None


def _lc(slug, timestamp=None):
    return NormalizedSubmission(
        problem_name=slug,
        problem_url=f"https://leetcode.com/problems/{slug}/",
        platform=LEETCODE,
        difficulty="Medium",
        submitted_at=timestamp,
    )


def _cf(contest, index, timestamp=None, outcome="accepted"):
    return NormalizedSubmission(
        problem_name=f"{contest}{index}",
        problem_url=f"https://codeforces.com/contest/{contest}/problem/{index}",
        platform=CODEFORCES,
        rating=1400,
        outcome=outcome,
        submitted_at=timestamp,
    )


class DashboardServiceTests(SimpleTestCase):
    def setUp(self):
        self.cache = DashboardCache(LocMemCache(f"dashboard-{uuid.uuid4()}", {}))
        self.handles = {"1": PlatformHandles(leetcode="alice", codeforces="alice_cf")}
        self.leetcode = FakeClient(
            LEETCODE,
            aggregate=AggregateFields(
                total_solved=120, easy_solved=60, medium_solved=50, hard_solved=10,
                calendar={1699920000: 3, 1700006400: 1},
            ),
            totals={"easy": 830, "medium": 1750, "hard": 740},
        )
        self.codeforces = FakeClient(
            CODEFORCES,
            aggregate=AggregateFields(rating=1650, max_rating=1720, rank="expert"),
        )

    def _lookup(self, identity):
        if identity not in self.handles:
            raise IdentityNotFound(identity)
        return self.handles[identity]

    def _service(self, **kwargs):
        kwargs.setdefault("leetcode", self.leetcode)
        kwargs.setdefault("codeforces", self.codeforces)
        return DashboardService(
            self.cache,
            profile_lookup=self._lookup,
            rng=random.Random(11),
            **kwargs,
        )

    def test_stats_merges_both_platforms(self):
        view = self._service().get_stats("1")

        self.assertEqual(view["leetcodeTotalSolved"], 120)
        self.assertEqual(view["leetcodeHardSolved"], 10)
        self.assertEqual(view["totalEasy"], 830)
        self.assertEqual(view["codeforcesRating"], 1650)
        self.assertEqual(view["codeforcesRank"], "expert")
        self.assertEqual(view["message"], "Loaded stats from LeetCode and Codeforces.")

    def test_second_read_is_served_from_cache(self):
        service = self._service()
        first = service.get_stats("1")
        self.codeforces.aggregate = AggregateFields(rating=9999)

        second = service.get_stats("1")

        self.assertEqual(second, first)
        self.assertEqual([c for c in self.codeforces.calls if c[0] == "aggregate"], [("aggregate", "alice_cf")])

    def test_failing_platform_leaves_null_fields(self):
        self.leetcode.raises = RuntimeError("LeetCode exploded")

        with self.assertLogs("core.services.dashboard", level="ERROR"):
            view = self._service().get_stats("1")

        self.assertIsNone(view["leetcodeTotalSolved"])
        self.assertIsNone(view["leetcodeEasySolved"])
        self.assertEqual(view["codeforcesRating"], 1650)
        self.assertEqual(view["codeforcesMaxRating"], 1720)
        self.assertIn("LeetCode is unavailable", view["message"])

    def test_no_handles_gives_a_neutral_view_without_fetching(self):
        self.handles["2"] = PlatformHandles(leetcode="", codeforces=None)

        view = self._service().get_stats("2")

        self.assertTrue(all(value is None for key, value in view.items() if key != "message"))
        self.assertEqual(view["message"], NO_HANDLES_MESSAGE)
        self.assertEqual(self.leetcode.calls, [])
        self.assertEqual(self.codeforces.calls, [])

    def test_only_configured_platforms_are_fetched(self):
        self.handles["3"] = PlatformHandles(codeforces="bob_cf")

        view = self._service().get_stats("3")

        self.assertEqual(self.leetcode.calls, [])
        self.assertIsNone(view["totalEasy"])
        self.assertEqual(view["codeforcesRating"], 1650)

    def test_total_failure_is_not_cached(self):
        self.leetcode.error = "LeetCode down"
        self.codeforces.error = "Codeforces down"
        service = self._service()

        view = service.get_stats("1")
        self.assertEqual(view["message"], "Could not reach LeetCode or Codeforces right now. Showing empty stats.")
        self.assertIsNone(self.cache.get("userStats:1"))

        self.leetcode.error = None
        self.codeforces.error = None
        self.assertEqual(service.get_stats("1")["codeforcesRating"], 1650)

    def test_unknown_identity_is_fatal(self):
        with self.assertRaises(IdentityNotFound):
            self._service().get_stats("404")

    def test_leetcode_totals_use_the_shared_entry(self):
        self.cache.set(LEETCODE_TOTALS_KEY, {"easy": 1, "medium": 2, "hard": 3}, 3600)

        view = self._service().get_stats("1")

        self.assertEqual((view["totalEasy"], view["totalMedium"], view["totalHard"]), (1, 2, 3))
        self.assertNotIn(("totals",), self.leetcode.calls)

    def test_leetcode_totals_are_fetched_once_and_shared(self):
        self.handles["2"] = PlatformHandles(leetcode="carol")
        service = self._service()

        service.get_stats("1")
        service.get_stats("2")

        self.assertEqual(self.leetcode.calls.count(("totals",)), 1)
        self.assertEqual(self.cache.get(LEETCODE_TOTALS_KEY), {"easy": 830, "medium": 1750, "hard": 740})

    def test_leetcode_totals_fall_back_without_caching(self):
        self.leetcode.totals = None

        view = self._service().get_stats("1")

        self.assertEqual(view["totalEasy"], FALLBACK_LEETCODE_TOTALS["easy"])
        self.assertEqual(view["totalHard"], FALLBACK_LEETCODE_TOTALS["hard"])
        self.assertIsNone(self.cache.get(LEETCODE_TOTALS_KEY))

    def test_practice_problems_example_pool_of_five(self):
        self.handles["5"] = PlatformHandles(leetcode="alice", codeforces="")
        self.leetcode.submissions = [
            _lc("a"), _lc("b"), _lc("c"), _lc("a"), _lc("d"), _lc("b"), _lc("e"),
        ]

        view = self._service().get_practice_problems("5")

        self.assertEqual(len(view["problems"]), 5)
        self.assertEqual(view["message"], "Found 5 practice problems for you.")
        self.assertEqual(len({p["url"] for p in view["problems"]}), 5)
        self.assertEqual(self.codeforces.calls, [])

    def test_practice_problems_merge_both_platforms(self):
        self.leetcode.submissions = [_lc("two-sum")]
        self.codeforces.submissions = [_cf(1850, "A"), _cf(1850, "B", outcome=OTHER), _cf(1850, "A")]

        view = self._service().get_practice_problems("1")

        self.assertEqual(
            sorted(p["url"] for p in view["problems"]),
            ["https://codeforces.com/contest/1850/problem/A", "https://leetcode.com/problems/two-sum/"],
        )
        self.assertIn(("submissions", "alice_cf", 20), self.codeforces.calls)

    def test_practice_problems_without_submissions(self):
        view = self._service().get_practice_problems("1")

        self.assertEqual(view, {"problems": [], "message": NOT_ENOUGH_SUBMISSIONS_MESSAGE})

    def test_practice_problems_without_handles(self):
        self.handles["2"] = PlatformHandles()

        view = self._service().get_practice_problems("2")

        self.assertEqual(view, {"problems": [], "message": NO_HANDLES_MESSAGE})
        self.assertEqual(self.leetcode.calls, [])

    def test_practice_problems_when_every_platform_fails(self):
        self.leetcode.error = "LeetCode down"
        self.codeforces.raises = RuntimeError("boom")

        with self.assertLogs("core.services.dashboard", level="ERROR"):
            view = self._service().get_practice_problems("1")

        self.assertEqual(view["problems"], [])
        self.assertEqual(
            view["message"],
            "Could not reach LeetCode or Codeforces right now. Showing empty practice problems.",
        )

    def test_practice_problems_with_one_platform_failing_keeps_empty_pool_message(self):
        self.codeforces.error = "Codeforces down"

        view = self._service().get_practice_problems("1")

        self.assertEqual(view["message"], NOT_ENOUGH_SUBMISSIONS_MESSAGE)

    def test_sample_is_kept_until_invalidated(self):
        self.leetcode.submissions = [_lc(f"p{i}") for i in range(20)]
        service = self._service()

        first = service.get_practice_problems("1")
        self.assertEqual(service.get_practice_problems("1"), first)

        service.refresh("1")
        service.get_practice_problems("1")
        self.assertEqual(len([c for c in self.leetcode.calls if c[0] == "submissions"]), 2)

    def test_activity_adds_platform_counts_per_day(self):
        day = 1699920000
        self.leetcode.aggregate = AggregateFields(calendar={day: 3, day + DAY: 1})
        self.codeforces.submissions = [
            _cf(1, "A", timestamp=day + 100),
            _cf(1, "B", timestamp=day + 200, outcome=OTHER),
            _cf(2, "A", timestamp=day + 3 * DAY + 5),
        ]

        view = self._service().get_activity("1")

        self.assertEqual(view["activityData"], [
            {"timestamp": day, "count": 5},
            {"timestamp": day + DAY, "count": 1},
            {"timestamp": day + 3 * DAY, "count": 1},
        ])
        self.assertEqual(view["leetcodeCalendar"], {str(day): 3, str(day + DAY): 1})
        self.assertEqual(view["codeforcesSubmissions"], 3)
        self.assertIn(("submissions", "alice_cf", 1000), self.codeforces.calls)

    def test_activity_hit_matches_the_computed_view(self):
        service = self._service()
        computed = service.get_activity("1")

        self.assertEqual(self.cache.get("activityData:1"), computed)

    def test_cache_write_failure_still_returns_the_view(self):
        backend = MagicMock()
        backend.get.return_value = None
        backend.set.side_effect = ConnectionError("redis down")
        service = DashboardService(
            DashboardCache(backend),
            leetcode=self.leetcode,
            codeforces=self.codeforces,
            profile_lookup=self._lookup,
        )

        with self.assertLogs("core.services.view_cache", level="WARNING"):
            view = service.get_stats("1")

        self.assertEqual(view["codeforcesRating"], 1650)
        self.assertTrue(backend.set.called)

    def test_slow_platform_is_abandoned_after_the_deadline(self):
        release = threading.Event()

        class SlowClient(FakeClient):
            def fetch_aggregate(self, handle):
                release.wait(5)
                return AggregateFields(rating=1), None

        service = self._service(codeforces=SlowClient(CODEFORCES), fetch_deadline=0.2)
        try:
            with self.assertLogs("core.services.dashboard", level="WARNING"):
                view = service.get_stats("1")
        finally:
            release.set()

        self.assertIsNone(view["codeforcesRating"])
        self.assertEqual(view["leetcodeTotalSolved"], 120)
        self.assertIn("Codeforces is unavailable", view["message"])

    def test_update_handles_forces_a_recompute(self):
        written = {}

        def writer(identity, leetcode=None, codeforces=None):
            written[identity] = (leetcode, codeforces)
            self.handles[identity] = PlatformHandles(leetcode="alice", codeforces=codeforces)
            return self.handles[identity]

        service = self._service(profile_writer=writer)
        service.get_stats("1")

        response = service.update_handles("1", codeforces="alice_new")
        view = service.get_stats("1")

        self.assertEqual(written["1"], (None, "alice_new"))
        self.assertEqual(response["codeforcesHandle"], "alice_new")
        self.assertEqual(response["message"], "Handles updated successfully!")
        self.assertIn(("aggregate", "alice_new"), self.codeforces.calls)
        self.assertEqual(view["codeforcesRating"], 1650)

    def test_refresh_clears_every_view(self):
        service = self._service()
        service.get_stats("1")
        service.get_practice_problems("1")
        service.get_activity("1")

        response = service.refresh("1")

        self.assertIn("Cache refreshed successfully", response["message"])
        self.assertIn("refreshedAt", response)
        for key in ("userStats:1", "practiceProblems:1", "activityData:1"):
            self.assertIsNone(self.cache.get(key))
