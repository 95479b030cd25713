import json
import logging

from django.contrib.auth.decorators import login_required
from django.http import HttpResponse, HttpResponseBadRequest, JsonResponse
from django.views.decorators.http import require_GET, require_POST

from .services.dashboard import get_dashboard_service
from .services.errors import IdentityNotFound

logger = logging.getLogger(__name__)


def _identity(request) -> str:
    return str(request.user.pk)


def _user_not_found():
    return JsonResponse({"message": "User not found."}, status=404)


def _read_payload(request) -> dict | None:
    if request.content_type == "application/json":
        try:
            payload = json.loads(request.body or b"{}")
        except ValueError:
            return None
        return payload if isinstance(payload, dict) else None
    return request.POST.dict()


def _serve_view(request, view_name: str):
    service = get_dashboard_service()
    try:
        payload = getattr(service, view_name)(_identity(request))
    except IdentityNotFound:
        logger.warning("Dashboard %s requested for user %s without a profile.", view_name, request.user.pk)
        return _user_not_found()
    return JsonResponse(payload)


def api_root(request):
    return HttpResponse("Codyssey API Running")


@login_required
@require_GET
def user_stats(request):
    return _serve_view(request, "get_stats")


@login_required
@require_GET
def practice_problems(request):
    return _serve_view(request, "get_practice_problems")


@login_required
@require_GET
def activity_data(request):
    return _serve_view(request, "get_activity")


@login_required
@require_POST
def update_handles(request):
    payload = _read_payload(request)
    if payload is None:
        return HttpResponseBadRequest("Invalid JSON body.")

    try:
        response = get_dashboard_service().update_handles(
            _identity(request),
            leetcode=payload.get("leetcodeUsername"),
            codeforces=payload.get("codeforcesHandle"),
        )
    except IdentityNotFound:
        return _user_not_found()
    return JsonResponse(response)


@login_required
@require_POST
def refresh_cache(request):
    return JsonResponse(get_dashboard_service().refresh(_identity(request)))
