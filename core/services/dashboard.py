from __future__ import annotations

import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from functools import partial
from typing import Any, Callable

from django.apps import apps
from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone

from core.models import Profile
from core.services.api_client import CodeforcesClient, LeetCodeClient, PlatformClient
from core.services.errors import IdentityNotFound
from core.services.merge import (
    activity_series,
    count_by_utc_day,
    merge_activity,
    merge_practice_problems,
    merge_stats,
)
from core.services.records import CODEFORCES, LEETCODE, PlatformHandles
from core.services.view_cache import (
    ACTIVITY,
    LEETCODE_TOTALS_KEY,
    PRACTICE,
    STATS,
    DashboardCache,
    leetcode_totals_ttl,
    view_cache_key,
    view_ttl,
)

logger = logging.getLogger(__name__)

# Used when the problem listing cannot be fetched; never written to the cache.
FALLBACK_LEETCODE_TOTALS = {"easy": 800, "medium": 1700, "hard": 700}

TOTALS = "LeetCode totals"

NO_HANDLES_MESSAGE = "No platform handles configured. Add your LeetCode username or Codeforces handle."
REFRESHED_MESSAGE = "Cache refreshed successfully. Next requests will fetch fresh data."
HANDLES_UPDATED_MESSAGE = "Handles updated successfully!"


def _find_profile(identity: str, *fields: str) -> Profile:
    queryset = Profile.objects.all()
    if fields:
        queryset = queryset.only(*fields)
    try:
        profile = queryset.filter(user_id=int(identity)).first()
    except (TypeError, ValueError):
        profile = None
    if profile is None:
        raise IdentityNotFound(identity)
    return profile


def profile_handles(identity: str) -> PlatformHandles:
    profile = _find_profile(identity, "leetcode_username", "codeforces_handle")
    return PlatformHandles(leetcode=profile.leetcode_username, codeforces=profile.codeforces_handle)


def save_profile_handles(
    identity: str,
    leetcode: str | None = None,
    codeforces: str | None = None,
) -> PlatformHandles:
    """
    Blank values keep the handle already stored. A user without a profile
    gets one on first save.
    """
    try:
        user_id = int(identity)
    except (TypeError, ValueError):
        raise IdentityNotFound(identity) from None
    if not get_user_model().objects.filter(pk=user_id).exists():
        raise IdentityNotFound(identity)
    profile, created = Profile.objects.get_or_create(user_id=user_id)
    if created:
        logger.info("Created profile for identity %s.", identity)

    update_fields = []
    leetcode = str(leetcode or "").strip()
    codeforces = str(codeforces or "").strip()
    if leetcode and leetcode != profile.leetcode_username:
        profile.leetcode_username = leetcode
        update_fields.append("leetcode_username")
    if codeforces and codeforces != profile.codeforces_handle:
        profile.codeforces_handle = codeforces
        update_fields.append("codeforces_handle")
    if update_fields:
        profile.save(update_fields=update_fields + ["updated_at"])

    return PlatformHandles(leetcode=profile.leetcode_username, codeforces=profile.codeforces_handle)


def _nothing_loaded(handles: PlatformHandles, errors: dict[str, str | None]) -> bool:
    configured = [name for name, handle in ((LEETCODE, handles.leetcode), (CODEFORCES, handles.codeforces)) if handle]
    return all(errors.get(name) for name in configured)


def _platform_message(label: str, handles: PlatformHandles, errors: dict[str, str | None]) -> str:
    if handles.is_empty:
        return NO_HANDLES_MESSAGE

    configured = [name for name, handle in ((LEETCODE, handles.leetcode), (CODEFORCES, handles.codeforces)) if handle]
    failed = [name for name in configured if errors.get(name)]
    loaded = [name for name in configured if name not in failed]

    if not loaded:
        return f"Could not reach {' or '.join(failed)} right now. Showing empty {label}."
    if failed:
        return f"Loaded {label} from {' and '.join(loaded)}; {' and '.join(failed)} is unavailable right now."
    return f"Loaded {label} from {' and '.join(loaded)}."


class DashboardService:
    """
    Serves the three dashboard views of one user: cache first, otherwise
    fetch from the configured platforms, merge, and store the result.
    """

    def __init__(
        self,
        cache: DashboardCache,
        leetcode: PlatformClient | None = None,
        codeforces: PlatformClient | None = None,
        profile_lookup: Callable[[str], PlatformHandles] = profile_handles,
        profile_writer: Callable[..., PlatformHandles] = save_profile_handles,
        rng: random.Random | None = None,
        fetch_deadline: float | None = None,
    ):
        self.cache = cache
        self.leetcode = leetcode or LeetCodeClient()
        self.codeforces = codeforces or CodeforcesClient()
        self.profile_lookup = profile_lookup
        self.profile_writer = profile_writer
        self.rng = rng or random.Random()
        self.fetch_deadline = fetch_deadline or getattr(settings, "UPSTREAM_FETCH_DEADLINE_SECONDS", 25)
        self.suggestion_limit = getattr(settings, "PRACTICE_SUGGESTION_LIMIT", 5)
        self.cf_practice_count = getattr(settings, "CF_PRACTICE_COUNT", 20)
        self.cf_activity_count = getattr(settings, "CF_ACTIVITY_COUNT", 1000)

    def _run_concurrently(self, calls: dict[str, Callable[[], tuple[Any, str | None]]]) -> dict[str, tuple[Any, str | None]]:
        if not calls:
            return {}

        results = {}
        deadline = time.monotonic() + self.fetch_deadline
        executor = ThreadPoolExecutor(max_workers=len(calls), thread_name_prefix="upstream")
        try:
            futures = {name: executor.submit(call) for name, call in calls.items()}
            for name, future in futures.items():
                try:
                    results[name] = future.result(timeout=max(0.0, deadline - time.monotonic()))
                except FuturesTimeout:
                    logger.warning("%s did not answer within %ss; continuing without it.", name, self.fetch_deadline)
                    results[name] = (None, f"{name} timed out")
                except Exception as exc:
                    logger.exception("%s fetch failed unexpectedly.", name)
                    results[name] = (None, str(exc) or exc.__class__.__name__)
        finally:
            # Late upstream calls are abandoned; they write nothing.
            executor.shutdown(wait=False, cancel_futures=True)
        return results

    def _populate(self, key: str, view: dict, ttl: int, handles: PlatformHandles, errors: dict[str, str | None]) -> None:
        configured = [name for name, handle in ((LEETCODE, handles.leetcode), (CODEFORCES, handles.codeforces)) if handle]
        if configured and all(errors.get(name) for name in configured):
            logger.info("Not caching %s: every configured platform failed.", key)
            return
        if not self.cache.set(key, view, ttl):
            logger.info("Serving %s without caching it.", key)

    def leetcode_totals(self) -> dict[str, int]:
        cached = self.cache.get(LEETCODE_TOTALS_KEY)
        if cached is not None:
            return cached
        return self.refresh_leetcode_totals() or dict(FALLBACK_LEETCODE_TOTALS)

    def refresh_leetcode_totals(self) -> dict[str, int] | None:
        """Fetches the global per-difficulty totals into the shared entry."""
        totals, error = self.leetcode.fetch_problem_totals()
        if error or totals is None:
            return None
        self.cache.set(LEETCODE_TOTALS_KEY, totals, leetcode_totals_ttl())
        return totals

    def get_stats(self, identity: str) -> dict:
        key = view_cache_key(STATS, identity)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        handles = self.profile_lookup(identity)
        calls = {}
        if handles.leetcode:
            calls[LEETCODE] = partial(self.leetcode.fetch_aggregate, handles.leetcode)
            calls[TOTALS] = lambda: (self.leetcode_totals(), None)
        if handles.codeforces:
            calls[CODEFORCES] = partial(self.codeforces.fetch_aggregate, handles.codeforces)

        results = self._run_concurrently(calls)
        leetcode, leetcode_error = results.get(LEETCODE, (None, None))
        codeforces, codeforces_error = results.get(CODEFORCES, (None, None))
        totals = None
        if handles.leetcode:
            totals = results.get(TOTALS, (None, None))[0] or dict(FALLBACK_LEETCODE_TOTALS)

        errors = {LEETCODE: leetcode_error, CODEFORCES: codeforces_error}
        view = merge_stats(leetcode, codeforces, totals)
        view["message"] = _platform_message("stats", handles, errors)
        self._populate(key, view, view_ttl(STATS), handles, errors)
        return view

    def get_practice_problems(self, identity: str) -> dict:
        key = view_cache_key(PRACTICE, identity)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        handles = self.profile_lookup(identity)
        calls = {}
        if handles.leetcode:
            calls[LEETCODE] = partial(self.leetcode.fetch_submissions, handles.leetcode)
        if handles.codeforces:
            calls[CODEFORCES] = partial(
                self.codeforces.fetch_submissions, handles.codeforces, self.cf_practice_count
            )

        results = self._run_concurrently(calls)
        leetcode, leetcode_error = results.get(LEETCODE, (None, None))
        codeforces, codeforces_error = results.get(CODEFORCES, (None, None))

        view = merge_practice_problems(
            leetcode or [],
            codeforces or [],
            rng=self.rng,
            limit=self.suggestion_limit,
        )
        logger.info("Selected %s practice problems for identity %s.", len(view["problems"]), identity)
        errors = {LEETCODE: leetcode_error, CODEFORCES: codeforces_error}
        if not view["problems"] and _nothing_loaded(handles, errors):
            view["message"] = _platform_message("practice problems", handles, errors)
        self._populate(key, view, view_ttl(PRACTICE), handles, errors)
        return view

    def get_activity(self, identity: str) -> dict:
        key = view_cache_key(ACTIVITY, identity)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        handles = self.profile_lookup(identity)
        calls = {}
        if handles.leetcode:
            calls[LEETCODE] = partial(self.leetcode.fetch_aggregate, handles.leetcode)
        if handles.codeforces:
            calls[CODEFORCES] = partial(
                self.codeforces.fetch_submissions, handles.codeforces, self.cf_activity_count
            )

        results = self._run_concurrently(calls)
        leetcode, leetcode_error = results.get(LEETCODE, (None, None))
        codeforces, codeforces_error = results.get(CODEFORCES, (None, None))

        leetcode_calendar = leetcode.calendar if leetcode else {}
        codeforces_submissions = codeforces or []
        merged = merge_activity(
            leetcode_calendar,
            count_by_utc_day(submission.submitted_at for submission in codeforces_submissions),
        )

        errors = {LEETCODE: leetcode_error, CODEFORCES: codeforces_error}
        view = {
            "activityData": activity_series(merged),
            "leetcodeCalendar": {str(day): count for day, count in sorted(leetcode_calendar.items())},
            "codeforcesSubmissions": len(codeforces_submissions),
            "message": _platform_message("activity", handles, errors),
        }
        self._populate(key, view, view_ttl(ACTIVITY), handles, errors)
        return view

    def refresh(self, identity: str) -> dict:
        self.cache.invalidate_identity(identity)
        return {
            "message": REFRESHED_MESSAGE,
            "refreshedAt": timezone.now().isoformat(),
        }

    def update_handles(self, identity: str, leetcode: str | None = None, codeforces: str | None = None) -> dict:
        handles = self.profile_writer(identity, leetcode=leetcode, codeforces=codeforces)
        self.cache.invalidate_identity(identity)
        return {
            "message": HANDLES_UPDATED_MESSAGE,
            "leetcodeUsername": handles.leetcode or "",
            "codeforcesHandle": handles.codeforces or "",
        }


def get_dashboard_service() -> DashboardService:
    return DashboardService(apps.get_app_config("core").dashboard_cache)
