"""
WSGI entry point for production servers (``gunicorn relief_api.wsgi:app``).
"""

from .app import create_app

app = create_app()
