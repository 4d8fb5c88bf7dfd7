"""
WSGI config for the dormdash project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'dormdash.settings')

application = get_wsgi_application()
