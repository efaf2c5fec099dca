"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tokensession.api.deps import json_response, timing
from tokensession.core.extensions import db

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return application, database and session store health information."""

    db_status = "ok"
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:  # pragma: no cover - depends on DB backend
        current_app.logger.exception("healthcheck.db_error")
        db_status = "fail"
    version = current_app.config.get("APP_VERSION", "dev")
    payload = {
        "status": "ok",
        "db": db_status,
        "session_store": current_app.config.get("SESSION_STORE"),
        "version": version,
    }
    return json_response(payload)
