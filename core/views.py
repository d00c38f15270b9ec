"""
Core views – authentication for organization admins.
"""
from axes.decorators import axes_dispatch
from django.conf import settings
from django.contrib import messages
from django.contrib.auth import authenticate, login, logout
from django.shortcuts import redirect, render
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.cache import never_cache

from core.services import ExamService


@axes_dispatch
@never_cache
def login_view(request):
    """Login for organization admins; lands on Manage Exams."""
    if request.user.is_authenticated:
        return redirect(settings.LOGIN_REDIRECT_URL)

    if request.method == 'POST':
        username = request.POST.get('username', '').strip()
        password = request.POST.get('password', '')

        if not username or not password:
            messages.error(request, 'Please provide both username and password.')
            return render(request, 'login.html')

        user = authenticate(request, username=username, password=password)

        if user is not None:
            login(request, user)
            if ExamService.resolve_current_organization(user) is None:
                messages.warning(
                    request,
                    'Your account is not linked to an organization yet. '
                    'Ask an administrator to grant organization access.',
                )
            next_url = request.POST.get('next') or request.GET.get('next')
            if next_url and url_has_allowed_host_and_scheme(
                next_url, allowed_hosts={request.get_host()}, require_https=request.is_secure(),
            ):
                return redirect(next_url)
            return redirect(settings.LOGIN_REDIRECT_URL)

        messages.error(request, 'Invalid username or password. (Username is case-sensitive)')

    return render(request, 'login.html')


def logout_view(request):
    """Logout – clears session and redirects to /login/."""
    logout(request)
    messages.info(request, 'You have been logged out.')
    return redirect(settings.LOGIN_URL)
