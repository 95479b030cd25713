from __future__ import annotations

import json
import logging
from typing import Any, Protocol
from urllib.parse import quote

import requests
from django.conf import settings

from core.services.errors import PartialDetailUnavailable, UpstreamUnavailable
from core.services.problem_urls import build_problem_url_from_fields
from core.services.records import (
    ACCEPTED,
    CODEFORCES,
    LEETCODE,
    OTHER,
    UNKNOWN_DIFFICULTY,
    AggregateFields,
    NormalizedSubmission,
)

logger = logging.getLogger(__name__)

LEETCODE_DIFFICULTY_LEVELS = {1: "easy", 2: "medium", 3: "hard"}


class PlatformClient(Protocol):
    platform: str

    def fetch_submissions(
        self, handle: str, limit: int | None = None
    ) -> tuple[list[NormalizedSubmission], str | None]:
        ...

    def fetch_aggregate(self, handle: str) -> tuple[AggregateFields | None, str | None]:
        ...


def _to_int(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _decode(response, label: str) -> Any:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if response.status_code >= 400:
        comment = payload.get("comment") if isinstance(payload, dict) else None
        raise UpstreamUnavailable(f"{label} answered HTTP {response.status_code}: {comment or 'no details'}")
    if payload is None:
        raise UpstreamUnavailable(f"{label} returned a non-JSON payload")
    return payload


def _get_json(url: str, *, label: str, timeout: int, params: dict | None = None) -> Any:
    try:
        response = requests.get(url, params=params, timeout=timeout)
    except requests.RequestException as exc:
        raise UpstreamUnavailable(f"{label} request failed: {exc}") from exc
    return _decode(response, label)


def _post_json(url: str, *, label: str, timeout: int, body: dict) -> Any:
    try:
        response = requests.post(url, json=body, timeout=timeout)
    except requests.RequestException as exc:
        raise UpstreamUnavailable(f"{label} request failed: {exc}") from exc
    return _decode(response, label)


def parse_submission_calendar(raw) -> dict[int, int]:
    """
    LeetCode reports the calendar either as an object or as a JSON-encoded
    string; keys are unix timestamps (seconds) of the day.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return {}
    if not isinstance(raw, dict):
        return {}

    calendar = {}
    for key, value in raw.items():
        timestamp = _to_int(key)
        count = _to_int(value)
        if timestamp is None or count is None:
            continue
        calendar[timestamp] = calendar.get(timestamp, 0) + count
    return calendar


class LeetCodeClient:
    platform = LEETCODE

    RECENT_AC_QUERY = """
        query recentAcSubmissions($username: String!, $limit: Int!) {
          recentAcSubmissionList(username: $username, limit: $limit) {
            id
            title
            titleSlug
            timestamp
          }
        }
    """

    QUESTION_QUERY = """
        query questionData($titleSlug: String!) {
          question(titleSlug: $titleSlug) {
            title
            difficulty
            topicTags {
              name
            }
          }
        }
    """

    def __init__(
        self,
        graphql_url: str | None = None,
        stats_api_url: str | None = None,
        problems_url: str | None = None,
        timeout: int | None = None,
        recent_limit: int | None = None,
    ):
        self.graphql_url = graphql_url or getattr(settings, "LEETCODE_GRAPHQL_URL", "https://leetcode.com/graphql")
        self.stats_api_url = (
            stats_api_url
            or getattr(settings, "LEETCODE_STATS_API_URL", "https://leetcode-stats-api.herokuapp.com")
        ).rstrip("/")
        self.problems_url = problems_url or getattr(
            settings, "LEETCODE_PROBLEMS_URL", "https://leetcode.com/api/problems/all/"
        )
        self.timeout = timeout or getattr(settings, "UPSTREAM_TIMEOUT_SECONDS", 10)
        self.recent_limit = recent_limit or getattr(settings, "LEETCODE_RECENT_LIMIT", 20)

    def _graphql(self, query: str, variables: dict) -> dict:
        payload = _post_json(
            self.graphql_url,
            label="LeetCode GraphQL",
            timeout=self.timeout,
            body={"query": query, "variables": variables},
        )
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            errors = payload.get("errors") if isinstance(payload, dict) else None
            raise UpstreamUnavailable(f"LeetCode GraphQL returned no data: {errors or payload!r}")
        return data

    def _fetch_question(self, slug: str) -> tuple[str | None, str, tuple[str, ...]]:
        try:
            data = self._graphql(self.QUESTION_QUERY, {"titleSlug": slug})
        except UpstreamUnavailable as exc:
            raise PartialDetailUnavailable(str(exc)) from exc

        question = data.get("question")
        if not isinstance(question, dict):
            raise PartialDetailUnavailable(f"LeetCode has no details for {slug}")

        tags = tuple(
            tag["name"]
            for tag in question.get("topicTags") or []
            if isinstance(tag, dict) and tag.get("name")
        )
        return question.get("title"), question.get("difficulty") or UNKNOWN_DIFFICULTY, tags

    def fetch_submissions(self, handle, limit=None):
        """
        Recent accepted submissions, one entry per problem, enriched with
        difficulty and topic tags. Detail lookups run one at a time.
        """
        if not handle:
            return [], None

        try:
            data = self._graphql(
                self.RECENT_AC_QUERY,
                {"username": handle, "limit": limit or self.recent_limit},
            )
            recent = data.get("recentAcSubmissionList")
            if recent is None:
                recent = []
            if not isinstance(recent, list):
                raise UpstreamUnavailable("LeetCode recentAcSubmissionList is not a list")
        except UpstreamUnavailable as exc:
            logger.warning("LeetCode submissions unavailable for %s: %s", handle, exc)
            return [], str(exc)

        submissions = []
        seen_urls = set()
        for item in recent:
            if not isinstance(item, dict):
                continue
            slug = item.get("titleSlug")
            problem_url = build_problem_url_from_fields(LEETCODE, slug=slug)
            if not problem_url or problem_url in seen_urls:
                continue
            seen_urls.add(problem_url)

            title = item.get("title") or slug
            try:
                detail_title, difficulty, tags = self._fetch_question(slug)
                title = detail_title or title
            except PartialDetailUnavailable as exc:
                logger.warning("LeetCode details unavailable for %s: %s", slug, exc)
                difficulty, tags = UNKNOWN_DIFFICULTY, ()

            submissions.append(
                NormalizedSubmission(
                    problem_name=title,
                    problem_url=problem_url,
                    platform=LEETCODE,
                    difficulty=difficulty,
                    tags=tags,
                    outcome=ACCEPTED,
                    submitted_at=_to_int(item.get("timestamp")),
                )
            )

        logger.info("Fetched %s LeetCode accepted problems for %s.", len(submissions), handle)
        return submissions, None

    def fetch_aggregate(self, handle):
        if not handle:
            return None, None

        try:
            payload = _get_json(
                f"{self.stats_api_url}/{quote(handle, safe='')}",
                label="LeetCode stats API",
                timeout=self.timeout,
            )
            if not isinstance(payload, dict):
                raise UpstreamUnavailable("LeetCode stats API payload is not an object")
            status = payload.get("status")
            if status and status != "success":
                raise UpstreamUnavailable(f"LeetCode stats API status {status}: {payload.get('message', '')}")
        except UpstreamUnavailable as exc:
            logger.warning("LeetCode stats unavailable for %s: %s", handle, exc)
            return None, str(exc)

        return AggregateFields(
            total_solved=_to_int(payload.get("totalSolved")),
            easy_solved=_to_int(payload.get("easySolved")),
            medium_solved=_to_int(payload.get("mediumSolved")),
            hard_solved=_to_int(payload.get("hardSolved")),
            calendar=parse_submission_calendar(payload.get("submissionCalendar")),
        ), None

    def fetch_problem_totals(self) -> tuple[dict[str, int] | None, str | None]:
        """Counts every public problem by difficulty level."""
        try:
            payload = _get_json(self.problems_url, label="LeetCode problem listing", timeout=self.timeout)
            pairs = payload.get("stat_status_pairs") if isinstance(payload, dict) else None
            if not isinstance(pairs, list):
                raise UpstreamUnavailable("LeetCode problem listing has no stat_status_pairs")
        except UpstreamUnavailable as exc:
            logger.warning("LeetCode problem totals unavailable: %s", exc)
            return None, str(exc)

        totals = {name: 0 for name in LEETCODE_DIFFICULTY_LEVELS.values()}
        for item in pairs:
            difficulty = item.get("difficulty") if isinstance(item, dict) else None
            level = difficulty.get("level") if isinstance(difficulty, dict) else None
            name = LEETCODE_DIFFICULTY_LEVELS.get(level)
            if name:
                totals[name] += 1
        return totals, None


class CodeforcesClient:
    platform = CODEFORCES

    def __init__(
        self,
        api_url: str | None = None,
        timeout: int | None = None,
        submissions_count: int | None = None,
    ):
        self.api_url = (api_url or getattr(settings, "CODEFORCES_API_URL", "https://codeforces.com/api")).rstrip("/")
        self.timeout = timeout or getattr(settings, "UPSTREAM_TIMEOUT_SECONDS", 10)
        self.submissions_count = submissions_count or getattr(settings, "CF_PRACTICE_COUNT", 20)

    def _call(self, method: str, params: dict) -> Any:
        payload = _get_json(
            f"{self.api_url}/{method}",
            label=f"Codeforces {method}",
            timeout=self.timeout,
            params=params,
        )
        if not isinstance(payload, dict):
            raise UpstreamUnavailable(f"Codeforces {method} payload is not an object")
        if payload.get("status") != "OK":
            raise UpstreamUnavailable(f"Codeforces {method} status not OK: {payload.get('comment', '')}")
        return payload.get("result")

    def fetch_submissions(self, handle, limit=None):
        if not handle:
            return [], None

        try:
            result = self._call(
                "user.status",
                {"handle": handle, "from": 1, "count": limit or self.submissions_count},
            )
            if not isinstance(result, list):
                raise UpstreamUnavailable("Codeforces user.status result is not a list")
        except UpstreamUnavailable as exc:
            logger.warning("Codeforces submissions unavailable for %s: %s", handle, exc)
            return [], str(exc)

        submissions = []
        for sub in result:
            if not isinstance(sub, dict):
                continue
            problem = sub.get("problem") or {}
            problem_url = build_problem_url_from_fields(
                CODEFORCES,
                contest_id=problem.get("contestId"),
                problem_index=problem.get("index"),
            )
            if not problem_url:
                continue
            submissions.append(
                NormalizedSubmission(
                    problem_name=problem.get("name") or problem_url,
                    problem_url=problem_url,
                    platform=CODEFORCES,
                    rating=_to_int(problem.get("rating")),
                    tags=tuple(problem.get("tags") or ()),
                    outcome=ACCEPTED if sub.get("verdict") == "OK" else OTHER,
                    submitted_at=_to_int(sub.get("creationTimeSeconds")),
                )
            )

        logger.info("Fetched %s Codeforces submissions for %s.", len(submissions), handle)
        return submissions, None

    def fetch_aggregate(self, handle):
        if not handle:
            return None, None

        try:
            result = self._call("user.info", {"handles": handle})
            if not isinstance(result, list) or not result or not isinstance(result[0], dict):
                raise UpstreamUnavailable(f"Codeforces user.info has no entry for {handle}")
        except UpstreamUnavailable as exc:
            logger.warning("Codeforces stats unavailable for %s: %s", handle, exc)
            return None, str(exc)

        payload = result[0]
        return AggregateFields(
            rating=_to_int(payload.get("rating")),
            max_rating=_to_int(payload.get("maxRating")),
            rank=payload.get("rank"),
        ), None
