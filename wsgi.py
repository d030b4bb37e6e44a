"""
Flask-Migrate / Alembic entry point.

Usage:
    flask --app wsgi db upgrade
    gunicorn wsgi:app
"""

from portal import create_app

app = create_app()
