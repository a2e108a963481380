"""
WSGI config for the auditdesk project.
"""

import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'auditdesk.settings')
application = get_wsgi_application()
