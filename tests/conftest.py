"""
Shared pytest fixtures for the QA Board test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - project: Pre-created landing/wordpress Project entity
    - headers_for: builds identity + acting-role request headers
"""

import pytest

from qaboard import create_app
from qaboard.middleware.session_context import SessionContext
from qaboard.models import db as _db
from qaboard.models.project import Project


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        # Ids are reused after the tables are recreated; drop cached boards
        app.extensions["task_board_cache"].clear()
        yield
        app.extensions["task_board_cache"].clear()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def project():
    """A landing page built on WordPress."""
    proj = Project(name="Landing Test", client="ACME", site_type="landing", technology="wordpress")
    _db.session.add(proj)
    _db.session.commit()
    return proj


@pytest.fixture()
def ecommerce_project():
    proj = Project(name="Shop Test", client="ACME", site_type="ecommerce", technology="shopify")
    _db.session.add(proj)
    _db.session.commit()
    return proj


def make_ctx(role, email=None):
    return SessionContext(email=email or f"{role}@example.com", full_name=role.title(), acting_role=role)


@pytest.fixture()
def ctx_for():
    """Factory: ``ctx_for("qa")`` -> SessionContext acting as qa."""
    return make_ctx


@pytest.fixture()
def headers_for():
    """Factory: ``headers_for("qa")`` -> identity + acting-role headers."""

    def _headers(role, email=None):
        return {
            "X-User": email or f"{role}@example.com",
            "X-User-Name": role.title(),
            "X-Acting-Role": role,
        }

    return _headers
