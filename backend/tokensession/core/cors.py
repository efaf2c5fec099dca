"""CORS configuration helper for API resources."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS

from tokensession.core.headers import SESSION_HEADERS


def init_app(app: Flask) -> None:
    """Configure CORS for API endpoints based on application config.

    Parameters
    ----------
    app: flask.Flask
        Application whose ``CORS_ORIGINS`` and ``CORS_MAX_AGE`` settings are
        consulted. When ``CORS_ORIGINS`` is blank or ``"*"`` the policy allows
        any origin but disables credential support.

    Notes
    -----
    Browsers hide non-safelisted response headers from scripts, so the session
    headers (``access-token``, ``client``, ``uid``, ``expiry``, ``token-type``)
    are listed in ``Access-Control-Expose-Headers``; without it a single-page
    client could never read the rotated token.
    """
    raw_origins = app.config.get("CORS_ORIGINS", "")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    wildcard = len(origins) == 0 or origins == ["*"]

    CORS(
        app,
        resources={r"/api/*": {"origins": "*" if wildcard else origins}},
        supports_credentials=not wildcard,
        allow_headers=["Content-Type", *SESSION_HEADERS],
        expose_headers=list(SESSION_HEADERS),
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )
