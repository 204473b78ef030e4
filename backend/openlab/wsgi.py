"""
WSGI config for openlab project.
"""
import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'openlab.settings')
application = get_wsgi_application()
