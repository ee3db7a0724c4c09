"""
Shared pytest fixtures for the worktrack test suite.

Provides:
    - app: Flask application (session-scoped, in-memory SQLite)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test app context + table recreate (autouse)
    - client: Flask test client (function-scoped)
    - services: managers wired on db.session
    - owner_headers: request headers carrying the default test owner
"""

import pytest

from worktrack import create_app
from worktrack.models import db as _db
from worktrack.services.registry import build_services



# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


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
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def owner_headers():
    return {"X-Owner-Id": "user_alice"}


@pytest.fixture()
def services():
    """Managers bound to the test's db.session."""
    return build_services(_db.session, impact_strategy="completion_ratio")
