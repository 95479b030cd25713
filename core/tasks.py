import logging

from celery import shared_task

from .services.dashboard import get_dashboard_service

logger = logging.getLogger(__name__)


@shared_task
def refresh_leetcode_totals():
    """Re-warms the shared per-difficulty LeetCode totals used by every stats view."""
    totals = get_dashboard_service().refresh_leetcode_totals()
    if totals is None:
        logger.warning("LeetCode totals refresh failed; the previous entry stays until it expires.")
        return {"status": "TEMP_FAIL"}

    logger.info(
        "LeetCode totals refreshed: easy=%s medium=%s hard=%s",
        totals.get("easy"),
        totals.get("medium"),
        totals.get("hard"),
    )
    return {"status": "OK", **totals}
