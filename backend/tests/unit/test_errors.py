"""Tests for service → HTTP error translation."""

from __future__ import annotations

import pytest
from tokensession.core import errors as api_errors
from tokensession.services._shared.base import BaseService
from tokensession.services._shared.errors import (
    ConflictError,
    DuplicateSessionError,
    InvalidCredentialsError,
    InvalidSessionError,
    NotFoundError,
    RaceLostError,
    ServiceError,
    SessionNotFoundError,
    StorageError,
)


@pytest.mark.parametrize(
    "exc, status, code",
    [
        (InvalidCredentialsError(), 401, "unauthorized"),
        (InvalidSessionError(), 401, "unauthorized"),
        (RaceLostError("P1", "C1"), 409, "race_lost"),
        (DuplicateSessionError("P1", "C1"), 409, "conflict"),
        (ConflictError("User", "taken"), 409, "conflict"),
        (SessionNotFoundError("P1", "C1"), 404, "not_found"),
        (NotFoundError("User", 1), 404, "not_found"),
        (StorageError(), 503, "service_unavailable"),
        (ServiceError("bad input"), 400, "bad_request"),
    ],
)
def test_translate_exceptions(exc, status, code):
    translated = BaseService.translate_exceptions(exc)
    assert isinstance(translated, api_errors.APIError)
    assert translated.status_code == status
    assert translated.code == code


def test_session_denials_share_one_message():
    a = BaseService.translate_exceptions(InvalidSessionError())
    b = BaseService.translate_exceptions(InvalidSessionError("expired"))
    assert a.message == "Invalid session"
    # the message passed by the raiser never leaks
    assert b.message == "Invalid session"


def test_non_service_errors_pass_through():
    exc = KeyError("x")
    assert BaseService.translate_exceptions(exc) is exc
