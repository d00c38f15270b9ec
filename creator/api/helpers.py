"""
Shared plumbing for the creator JSON API.
"""
import json
from functools import wraps

from django.http import JsonResponse

from core.services import ExamService

ORGANIZATION_REQUIRED = 'Organization access required'


def json_body(request):
    """Decoded JSON object from the request, or None when it is not one."""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def invalid_json():
    return JsonResponse({'message': 'Invalid JSON body', 'errors': {}}, status=400)


def service_error(exc):
    return JsonResponse({'message': exc.message, 'errors': exc.errors}, status=exc.status_code)


def organization_required(view):
    """Resolve the caller's organization into ``request.organization`` or answer 403."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        organization = ExamService.resolve_current_organization(request.user)
        if organization is None:
            return JsonResponse({'message': ORGANIZATION_REQUIRED, 'errors': {}}, status=403)
        request.organization = organization
        return view(request, *args, **kwargs)

    return wrapper


def require_methods(*methods):
    """Like ``require_http_methods`` but answers in JSON."""

    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            if request.method not in methods:
                return JsonResponse(
                    {'message': f"{' or '.join(methods)} required", 'errors': {}},
                    status=405,
                )
            return view(request, *args, **kwargs)

        return wrapper

    return decorator
