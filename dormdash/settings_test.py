"""
Settings for the test suite: in-memory SQLite, fast hashing, temp media.
"""

import tempfile
from pathlib import Path

from .settings import *  # noqa: F401,F403

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

MEDIA_ROOT = Path(tempfile.mkdtemp(prefix='dormdash-media-'))

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

LOGGING['loggers']['marketplace']['level'] = 'WARNING'  # noqa: F405
