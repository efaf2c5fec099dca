"""Pytest fixtures configuring an isolated database per test.

The SQL session store commits on its own engine connections, so tests cannot
hide their writes inside a SAVEPOINT. Each test instead gets a fresh SQLite
file under ``tmp_path`` that the ORM session and the store share.
"""

from __future__ import annotations

import os

import pytest
from tokensession.core.config import TestingConfig
from tokensession.core.extensions import db as _db  # Flask-SQLAlchemy instance
from tokensession.core.sessions import get_session_manager
from tokensession.factory import create_app  # application factory under test

TEST_HASH_KEY = "test-pepper"


class TestConfig(TestingConfig):
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - Exercises the durable SQL session store end-to-end.
    - ``SQLALCHEMY_DATABASE_URI`` is filled in per test by the ``app`` fixture.
    - Avoids hitting external services (no Redis).
    """

    TOKEN_HASH_KEY = TEST_HASH_KEY
    SESSION_STORE = "sqlalchemy"
    SESSION_MAX_DEVICES = 3
    REDIS_URL = None
    LOG_LEVEL = "WARNING"


@pytest.fixture()
def app(tmp_path):
    """Create a Flask application bound to a throwaway SQLite file.

    Yields
    ------
    flask.Flask
        Application with an active app context and all tables created.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    os.environ.pop("REDIS_URL", None)

    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'test.db'}"

    application = create_app(_Config)
    application.logger.setLevel("WARNING")
    with application.app_context():
        _db.create_all()
        yield application
        _db.session.remove()
        _db.drop_all()
        _db.engine.dispose()


@pytest.fixture()
def db(app):
    """Return the database extension bound to the testing application."""
    return _db


@pytest.fixture()
def session(db):
    """Return the Flask-scoped SQLAlchemy session."""
    return db.session


@pytest.fixture()
def client(app):
    """Return a Flask test client."""
    return app.test_client()


@pytest.fixture()
def manager(app):
    """Return the :class:`SessionManager` wired by the factory."""
    return get_session_manager()


# -- Hook up Factory Boy to the Flask-scoped session --------------------------
@pytest.fixture(autouse=True)
def _factories_session(request):
    """Wire Factory Boy's session helper when the test uses the database."""
    from tests.factories import SQLAlchemySession

    if "app" not in request.fixturenames:
        SQLAlchemySession.set(None)
        yield
        return
    SQLAlchemySession.set(request.getfixturevalue("session"))
    yield
    SQLAlchemySession.set(None)
