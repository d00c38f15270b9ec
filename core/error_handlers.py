"""
Custom error handlers for production - sanitize error messages.

Requests under /api/ get the JSON error envelope instead of an HTML page.
"""
from django.http import JsonResponse
from django.shortcuts import render
from django.views.decorators.csrf import requires_csrf_token

MESSAGES = {
    400: 'Bad request',
    403: 'Permission denied',
    404: 'Not found',
    500: 'Internal server error',
}


def _respond(request, status):
    if request.path.startswith('/api/'):
        return JsonResponse({'message': MESSAGES[status], 'errors': {}}, status=status)
    return render(request, f'errors/{status}.html', status=status)


@requires_csrf_token
def handler404(request, exception=None):
    """Custom 404 error handler."""
    return _respond(request, 404)


@requires_csrf_token
def handler500(request):
    """Custom 500 error handler - sanitize error details in production."""
    return _respond(request, 500)


@requires_csrf_token
def handler403(request, exception=None):
    return _respond(request, 403)


@requires_csrf_token
def handler400(request, exception=None):
    return _respond(request, 400)
