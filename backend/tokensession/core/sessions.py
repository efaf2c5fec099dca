"""Wire the session core into the Flask application."""

from __future__ import annotations

from datetime import timedelta

from flask import Flask, current_app

from tokensession.core.config import SESSION_STORE_BACKENDS
from tokensession.core.extensions import db, get_redis
from tokensession.services._shared.ports import InMemorySessionStore, SessionStore
from tokensession.services.auth.credentials import PasswordCredentialChecker
from tokensession.services.sessions import SessionConfig, SessionManager

EXTENSION_KEY = "session_manager"


def build_store(app: Flask) -> SessionStore:
    """Instantiate the backend named by ``SESSION_STORE``.

    :raises RuntimeError: On an unknown backend name.
    """
    backend = str(app.config.get("SESSION_STORE", "sqlalchemy")).lower()
    if backend not in SESSION_STORE_BACKENDS:
        raise RuntimeError(
            f"Unknown SESSION_STORE {backend!r}; expected one of {sorted(SESSION_STORE_BACKENDS)}"
        )

    if backend == "redis":
        from tokensession.infra.redis.redis_session_store import RedisSessionStore

        retention = timedelta(seconds=int(app.config.get("SESSION_RETENTION_SECONDS", 86400)))
        return RedisSessionStore(r=get_redis(), retention=retention)

    if backend == "sqlalchemy":
        from tokensession.infra.sqlalchemy.sqlalchemy_session_store import SQLAlchemySessionStore

        with app.app_context():
            engine = db.engine
        return SQLAlchemySessionStore(engine=engine)

    app.logger.warning("Using the in-memory session store; sessions will not survive restarts.")
    return InMemorySessionStore()


def init_app(app: Flask) -> None:
    """Build the :class:`SessionManager` once and register it on the app."""
    manager = SessionManager(
        store=build_store(app),
        config=SessionConfig.from_mapping(app.config),
        credentials=PasswordCredentialChecker(),
    )
    app.extensions[EXTENSION_KEY] = manager


def get_session_manager() -> SessionManager:
    """Return the manager bound to the current application."""
    manager = current_app.extensions.get(EXTENSION_KEY)
    if manager is None:
        raise RuntimeError("Session manager is not initialized. Call sessions.init_app() first.")
    return manager
