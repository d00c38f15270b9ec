"""
Login audit signal handlers.

Listens to Django's auth signals and writes one ``portal.auth`` line per
authentication event.
"""
import logging

from django.conf import settings
from django.contrib.auth.signals import user_logged_in, user_logged_out, user_login_failed
from django.dispatch import receiver

auth_logger = logging.getLogger('portal.auth')


def _get_client_ip(request):
    """
    Extract the real client IP from the request.

    Uses the first X-Forwarded-For hop only when the request came from a
    trusted proxy (TRUSTED_PROXIES in settings), otherwise REMOTE_ADDR.
    """
    if request is None:
        return None

    trusted_proxies = getattr(settings, 'TRUSTED_PROXIES', [])
    remote_addr = request.META.get('REMOTE_ADDR', '')
    x_forwarded = request.META.get('HTTP_X_FORWARDED_FOR')

    if x_forwarded and (not trusted_proxies or remote_addr in trusted_proxies):
        return x_forwarded.split(',')[0].strip()

    return remote_addr or None


def _user_agent(request):
    return request.META.get('HTTP_USER_AGENT', '')[:120] if request else ''


@receiver(user_logged_in)
def log_successful_login(sender, request, user, **kwargs):
    auth_logger.info(
        'LOGIN_SUCCESS | user=%s | ip=%s | ua=%s',
        user.get_username(), _get_client_ip(request), _user_agent(request),
    )


@receiver(user_login_failed)
def log_failed_login(sender, credentials, request=None, **kwargs):
    auth_logger.warning(
        'LOGIN_FAILED | username=%s | ip=%s | ua=%s',
        credentials.get('username', '<unknown>'), _get_client_ip(request), _user_agent(request),
    )


@receiver(user_logged_out)
def log_logout(sender, request, user, **kwargs):
    if user is None:
        return
    auth_logger.info('LOGOUT | user=%s | ip=%s', user.get_username(), _get_client_ip(request))
