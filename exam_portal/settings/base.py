"""
Base Django settings for exam_portal.
Common settings shared between development and production.
"""
import os
import sys
from datetime import timedelta
from pathlib import Path
import environ

# Build paths
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Check if running tests (manage.py test or pytest)
TESTING = 'test' in sys.argv or any('pytest' in arg for arg in sys.argv)

# Environment variables
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, ['*']),
    SWEEP_ON_LOAD=(bool, True),
    EXAM_LIST_PAGE_SIZE=(int, 10),
    DESCRIPTION_PREVIEW_WORDS=(int, 20),
)
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env('SECRET_KEY', default='django-insecure-change-me-in-production')

DEBUG = env('DEBUG')
ALLOWED_HOSTS = env('ALLOWED_HOSTS')

# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    # Third-party apps
    'axes',
    # Project apps
    'core.apps.CoreConfig',
    'creator.apps.CreatorConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    # Django-axes rate limiting (must be after AuthenticationMiddleware)
    'axes.middleware.AxesMiddleware',
    'core.middleware.SecurityHeadersMiddleware',
]

ROOT_URLCONF = 'exam_portal.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'exam_portal.wsgi.application'

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
     'OPTIONS': {'min_length': 8}},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

# Login URL
LOGIN_URL = '/login/'
LOGIN_REDIRECT_URL = '/creator/exams/'

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = env('TIME_ZONE', default='UTC')
USE_I18N = True
USE_TZ = True

# Static files
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

SESSION_COOKIE_AGE = 60 * 60 * 8
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = 'Lax'

# Must be shared across workers in production (e.g. CACHE_URL=redis://...)
CACHES = {
    'default': env.cache('CACHE_URL', default='locmemcache://'),
}

# ==========================================================================
# EXAM PORTAL SETTINGS
# ==========================================================================
# Flip expired upcoming exam dates to completed whenever the exam list loads
SWEEP_ON_LOAD = env('SWEEP_ON_LOAD')
# Exam groups per page on the Manage Exams screen
EXAM_LIST_PAGE_SIZE = env('EXAM_LIST_PAGE_SIZE')
# Words kept when previewing exam descriptions
DESCRIPTION_PREVIEW_WORDS = env('DESCRIPTION_PREVIEW_WORDS')
# Seconds a submitted form token is remembered
SUBMISSION_TOKEN_TTL = env.int('SUBMISSION_TOKEN_TTL', default=600)
# TrueType font for PDF exports; must cover Arabic for Arabic exam names
PDF_FONT_PATH = env('PDF_FONT_PATH', default='')

# ==========================================================================
# LOGGING
# ==========================================================================
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'portal.audit': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'portal.auth': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'django.request': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
    },
}

if TESTING:
    LOGGING['root']['level'] = 'CRITICAL'
    LOGGING['loggers']['portal.audit']['level'] = 'CRITICAL'
    LOGGING['loggers']['portal.auth']['level'] = 'CRITICAL'

# ==========================================================================
# DJANGO-AXES RATE LIMITING
# ==========================================================================
if TESTING:
    # Don't use axes in tests (it requires request object)
    AUTHENTICATION_BACKENDS = [
        'django.contrib.auth.backends.ModelBackend',
    ]
else:
    AUTHENTICATION_BACKENDS = [
        'axes.backends.AxesBackend',  # AxesBackend with ModelBackend fallback
        'django.contrib.auth.backends.ModelBackend',
    ]

# Lock out after 5 failed attempts
AXES_FAILURE_LIMIT = 5
# Lock out for 15 minutes
AXES_COOLOFF_TIME = timedelta(minutes=15)
# Lock based on username and IP for better security
AXES_LOCKOUT_PARAMETERS = ['username', 'ip_address']
# Reset attempts on successful login
AXES_RESET_ON_SUCCESS = True
# Lockouts are not exercised by the test suite
AXES_ENABLED = not TESTING
