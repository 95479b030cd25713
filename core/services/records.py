from __future__ import annotations

from dataclasses import dataclass, field

LEETCODE = "LeetCode"
CODEFORCES = "Codeforces"

ACCEPTED = "accepted"
OTHER = "other"

UNKNOWN_DIFFICULTY = "Unknown"


def _clean_handle(value: str | None) -> str | None:
    if not value:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class PlatformHandles:
    leetcode: str | None = None
    codeforces: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "leetcode", _clean_handle(self.leetcode))
        object.__setattr__(self, "codeforces", _clean_handle(self.codeforces))

    @property
    def is_empty(self) -> bool:
        return not self.leetcode and not self.codeforces


@dataclass(frozen=True)
class NormalizedSubmission:
    problem_name: str
    problem_url: str
    platform: str
    difficulty: str | None = None
    rating: int | None = None
    tags: tuple[str, ...] = ()
    outcome: str = ACCEPTED
    submitted_at: int | None = None

    @property
    def is_accepted(self) -> bool:
        return self.outcome == ACCEPTED

    def as_problem(self) -> dict:
        return {
            "name": self.problem_name,
            "url": self.problem_url,
            "platform": self.platform,
            "difficulty": self.difficulty,
            "rating": self.rating,
            "tags": list(self.tags),
        }


@dataclass
class AggregateFields:
    """Platform-reported aggregates; each platform fills only its own fields."""

    total_solved: int | None = None
    easy_solved: int | None = None
    medium_solved: int | None = None
    hard_solved: int | None = None
    rating: int | None = None
    max_rating: int | None = None
    rank: str | None = None
    calendar: dict[int, int] = field(default_factory=dict)
