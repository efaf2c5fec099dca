"""HTTP surface of the session service, mounted under ``API_BASE_PREFIX``."""

from __future__ import annotations

from flask import Flask


def _join(*parts: str) -> str:
    return "/" + "/".join(p.strip("/") for p in parts if p.strip("/"))


def init_app(app: Flask) -> None:
    """Mount every v1 blueprint at ``{API_BASE_PREFIX}/v1/{relative prefix}``."""

    from tokensession.api.v1 import API_VERSION, REGISTRY

    base = _join(app.config.get("API_BASE_PREFIX", "/api"), API_VERSION)
    for bp, rel_prefix in REGISTRY:
        app.register_blueprint(bp, url_prefix=_join(base, rel_prefix))


__all__ = ["init_app"]
