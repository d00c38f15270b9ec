"""
Creator API – Organization and hall lookups.
"""
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_GET

from core.services import ExamService

from .helpers import organization_required


@login_required
@require_GET
def get_current_organization(request):
    """GET /api/creator/organization"""
    organization = ExamService.resolve_current_organization(request.user)
    if organization is None:
        return JsonResponse(
            {'message': 'No organization is linked to this account', 'errors': {}}, status=404
        )
    return JsonResponse({'message': 'OK', 'data': organization.to_dict()})


@login_required
@require_GET
@organization_required
def get_locations(request):
    """GET /api/creator/locations"""
    locations = ExamService.list_locations(request.organization.id)
    return JsonResponse({'message': 'OK', 'data': [loc.to_dict() for loc in locations]})
