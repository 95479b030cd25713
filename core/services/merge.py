from __future__ import annotations

import random
from collections.abc import Iterable, Mapping

from core.services.records import AggregateFields, NormalizedSubmission

SECONDS_PER_DAY = 24 * 60 * 60
DEFAULT_SUGGESTION_LIMIT = 5

NOT_ENOUGH_SUBMISSIONS_MESSAGE = (
    "Could not find enough recent successful submissions to suggest problems. Try solving a few more!"
)


def merge_stats(
    leetcode: AggregateFields | None,
    codeforces: AggregateFields | None,
    leetcode_totals: Mapping[str, int] | None = None,
) -> dict:
    """
    Copies each platform's fields as reported. A platform that was not
    configured or did not answer contributes None, never 0.
    """
    totals = leetcode_totals or {}
    return {
        "leetcodeTotalSolved": leetcode.total_solved if leetcode else None,
        "leetcodeEasySolved": leetcode.easy_solved if leetcode else None,
        "leetcodeMediumSolved": leetcode.medium_solved if leetcode else None,
        "leetcodeHardSolved": leetcode.hard_solved if leetcode else None,
        "totalEasy": totals.get("easy"),
        "totalMedium": totals.get("medium"),
        "totalHard": totals.get("hard"),
        "codeforcesRating": codeforces.rating if codeforces else None,
        "codeforcesMaxRating": codeforces.max_rating if codeforces else None,
        "codeforcesRank": codeforces.rank if codeforces else None,
    }


def dedupe_by_problem_url(submissions: Iterable[NormalizedSubmission]) -> list[NormalizedSubmission]:
    unique = []
    seen = set()
    for submission in submissions:
        if submission.problem_url in seen:
            continue
        seen.add(submission.problem_url)
        unique.append(submission)
    return unique


def build_practice_pool(*sources: Iterable[NormalizedSubmission]) -> list[NormalizedSubmission]:
    accepted = (submission for source in sources for submission in source if submission.is_accepted)
    return dedupe_by_problem_url(accepted)


def sample_practice_problems(
    pool: list[NormalizedSubmission],
    rng: random.Random | None = None,
    limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> list[NormalizedSubmission]:
    shuffled = list(pool)
    # random.shuffle is Fisher-Yates.
    (rng or random).shuffle(shuffled)
    return shuffled[:max(0, limit)]


def merge_practice_problems(
    *sources: Iterable[NormalizedSubmission],
    rng: random.Random | None = None,
    limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> dict:
    pool = build_practice_pool(*sources)
    selected = sample_practice_problems(pool, rng=rng, limit=limit)
    if not selected:
        return {"problems": [], "message": NOT_ENOUGH_SUBMISSIONS_MESSAGE}
    return {
        "problems": [submission.as_problem() for submission in selected],
        "message": f"Found {len(selected)} practice problems for you.",
    }


def utc_day_start(timestamp: int) -> int:
    return int(timestamp) - int(timestamp) % SECONDS_PER_DAY


def count_by_utc_day(timestamps: Iterable[int | None]) -> dict[int, int]:
    counts: dict[int, int] = {}
    for timestamp in timestamps:
        if timestamp is None:
            continue
        day = utc_day_start(timestamp)
        counts[day] = counts.get(day, 0) + 1
    return counts


def merge_activity(*calendars: Mapping[int, int]) -> dict[int, int]:
    """Sums per-day counts; days that end up without activity are left out."""
    merged: dict[int, int] = {}
    for calendar in calendars:
        for timestamp, count in calendar.items():
            day = utc_day_start(timestamp)
            merged[day] = merged.get(day, 0) + int(count)
    return {day: count for day, count in merged.items() if count > 0}


def activity_series(calendar: Mapping[int, int]) -> list[dict]:
    return [
        {"timestamp": day, "count": count}
        for day, count in sorted(calendar.items())
    ]
