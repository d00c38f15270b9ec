"""
Development settings – SQLite, debug on.
"""
from .base import *

DEBUG = env('DEBUG', default=True)

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': env('SQLITE_PATH', default=str(BASE_DIR / 'db.sqlite3')),
    }
}
