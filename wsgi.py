"""
Flask-Migrate / Alembic entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi run
"""

from qaboard import create_app

app = create_app()
