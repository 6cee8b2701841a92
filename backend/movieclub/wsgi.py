"""
WSGI config for movieclub project.
"""
import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'movieclub.settings')
application = get_wsgi_application()
