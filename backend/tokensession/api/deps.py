"""Shared API helpers for session headers and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, after_this_request, current_app, g, jsonify, request
from marshmallow import ValidationError

from tokensession.core.errors import RaceLost, Unauthorized
from tokensession.core.headers import (
    ACCESS_TOKEN_HEADER,
    CLIENT_HEADER,
    EXPIRY_HEADER,
    MAX_ID_HEADER_LENGTH,
    TOKEN_TYPE,
    TOKEN_TYPE_HEADER,
    UID_HEADER,
)
from tokensession.core.logger import ensure_request_id
from tokensession.core.sessions import get_session_manager
from tokensession.services._shared.base import ServiceContext
from tokensession.services.sessions import CredentialsIn, DenyReason, IssuedToken

F = TypeVar("F", bound=Callable[..., Any])

# Key under ``flask.g`` holding the rotated token of the current request.
SESSION_G_KEY = "session_token"


def read_credentials() -> CredentialsIn | None:
    """Read ``uid``/``client``/``access-token`` from the request headers.

    Returns ``None`` when any of them is missing or blank, or when ``uid`` or
    ``client`` is longer than any stored id can be.
    """

    uid = (request.headers.get(UID_HEADER) or "").strip()
    client = (request.headers.get(CLIENT_HEADER) or "").strip()
    token = (request.headers.get(ACCESS_TOKEN_HEADER) or "").strip()
    if not (uid and client and token):
        return None
    if len(uid) > MAX_ID_HEADER_LENGTH or len(client) > MAX_ID_HEADER_LENGTH:
        return None
    return CredentialsIn(principal_id=uid, client_id=client, token=token)


def read_client_id() -> str | None:
    """Read an optional ``client`` header offered at sign-in.

    :raises marshmallow.ValidationError: If the value is too long to store.
    """

    client = (request.headers.get(CLIENT_HEADER) or "").strip()
    if len(client) > MAX_ID_HEADER_LENGTH:
        raise ValidationError(
            {CLIENT_HEADER: [f"Longer than maximum length {MAX_ID_HEADER_LENGTH}."]}
        )
    return client or None


def apply_session_headers(response: Response, issued: IssuedToken) -> Response:
    """Write the token headers of ``issued`` onto ``response``.

    ``expiry`` is sent as integer epoch seconds.
    """

    response.headers[ACCESS_TOKEN_HEADER] = issued.access_token
    response.headers[CLIENT_HEADER] = issued.client_id
    response.headers[UID_HEADER] = issued.principal_id
    response.headers[EXPIRY_HEADER] = str(int(issued.expiry.timestamp()))
    response.headers[TOKEN_TYPE_HEADER] = TOKEN_TYPE
    response.headers["Cache-Control"] = "no-store"
    return response


def require_session(func: F) -> F:
    """Validate the session headers and rotate the token.

    Every denial except a lost rotation race is reported as the same 401. The
    rotated headers are attached to whatever response the handler produces,
    error responses included, because the presented token is already spent.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        creds = read_credentials()
        if creds is None:
            raise Unauthorized("Invalid session")
        outcome = get_session_manager().validate(creds)
        if not outcome.allowed or outcome.issued is None:
            if outcome.reason is DenyReason.RACE_LOST:
                raise RaceLost()
            raise Unauthorized("Invalid session")

        issued = outcome.issued
        setattr(g, SESSION_G_KEY, issued)

        @after_this_request
        def _attach(response: Response) -> Response:
            return apply_session_headers(response, issued)

        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_session() -> IssuedToken:
    """Return the rotated token of the request authorized by :func:`require_session`."""

    issued = g.get(SESSION_G_KEY)
    if issued is None:
        raise RuntimeError("current_session() used outside a @require_session handler")
    return issued


def service_context() -> ServiceContext:
    """Build the request-scoped :class:`ServiceContext`."""

    issued = g.get(SESSION_G_KEY)
    return ServiceContext(
        principal_id=issued.principal_id if issued else None,
        client_id=issued.client_id if issued else None,
        request_id=ensure_request_id(),
    )


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
