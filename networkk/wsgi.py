"""
WSGI config for the Networkk project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'networkk.settings')

application = get_wsgi_application()
