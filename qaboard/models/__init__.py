"""
QA Board — SQLAlchemy models package.

The shared ``db`` handle is created here and bound to the Flask app in
``qaboard.create_app``. Model modules import it from this package.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
