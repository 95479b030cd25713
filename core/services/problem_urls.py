from urllib.parse import urlsplit, urlunsplit

from core.services.records import CODEFORCES, LEETCODE


def normalize_problem_url(url: str) -> str:
    if not url:
        return url
    parts = urlsplit(url.strip())
    cleaned_path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme, parts.netloc.lower(), cleaned_path, "", ""))


def build_problem_url_from_fields(
    platform: str,
    contest_id: str | int | None = None,
    problem_index: str | None = None,
    slug: str | None = None,
) -> str | None:
    if platform == CODEFORCES:
        if contest_id in (None, "") or not problem_index:
            return None
        return normalize_problem_url(
            f"https://codeforces.com/contest/{contest_id}/problem/{problem_index}"
        )

    if platform == LEETCODE:
        slug = (slug or "").strip().strip("/")
        if not slug:
            return None
        # LeetCode links keep the trailing slash the site itself uses.
        return f"https://leetcode.com/problems/{slug}/"

    return None
