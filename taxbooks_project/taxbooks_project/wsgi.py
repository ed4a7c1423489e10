"""
WSGI config for TaxBooks Project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'taxbooks_project.settings')

application = get_wsgi_application()
