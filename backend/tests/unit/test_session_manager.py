"""Unit tests for SessionManager (login / validate / rotate / revoke)."""

from __future__ import annotations

import logging
from datetime import timedelta

import pytest
from tokensession.services._shared.errors import (
    InvalidCredentialsError,
    InvalidSessionError,
    RaceLostError,
)
from tokensession.services._shared.ports import InMemorySessionStore, StaticCredentialChecker
from tokensession.services.sessions import (
    CredentialsIn,
    DenyReason,
    LoginIn,
    SessionConfig,
    SessionManager,
)

from tests.helpers.sessions import FakeClock, InterleavingStore


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture()
def manager(store, clock) -> SessionManager:
    """SessionManager wired to in-memory doubles."""
    checker = StaticCredentialChecker()
    checker.add("alice@example.com", "s3cret", "P1")
    return SessionManager(
        store=store,
        config=SessionConfig(hash_key=b"k", max_devices=3),
        credentials=checker,
        clock=clock,
    )


def _creds(issued, token=None) -> CredentialsIn:
    return CredentialsIn(issued.principal_id, issued.client_id, token or issued.access_token)


# -------------------------------- Tests ----------------------------------- #
def test_login_issues_session(manager, store):
    issued = manager.login(LoginIn(identifier="Alice@Example.com", secret="s3cret", client_id="C1"))
    assert issued.principal_id == "P1"
    assert issued.client_id == "C1"
    assert store.get("P1", "C1") is not None


@pytest.mark.parametrize(
    "identifier, secret",
    [("alice@example.com", "wrong"), ("nobody@example.com", "s3cret")],
)
def test_login_failures_are_indistinguishable(manager, store, identifier, secret):
    with pytest.raises(InvalidCredentialsError) as excinfo:
        manager.login(LoginIn(identifier=identifier, secret=secret))
    assert str(excinfo.value) == "Invalid credentials"
    assert list(store.list_for_principal("P1")) == []


def test_validate_delegates_and_rotates(manager):
    t1 = manager.login(LoginIn("alice@example.com", "s3cret", "C1"))
    outcome = manager.validate(_creds(t1))
    assert outcome.allowed
    assert manager.validate(_creds(t1)).reason is DenyReason.TOKEN_MISMATCH


def test_rotate_returns_next_token(manager):
    t1 = manager.login(LoginIn("alice@example.com", "s3cret", "C1"))
    t2 = manager.rotate(_creds(t1))
    assert t2.access_token != t1.access_token
    assert manager.validate(_creds(t2)).allowed


def test_rotate_invalid_raises_uniform_error(manager, clock):
    t1 = manager.login(LoginIn("alice@example.com", "s3cret", "C1"))
    with pytest.raises(InvalidSessionError):
        manager.rotate(_creds(t1, token="forged"))
    clock.advance(days=30)
    with pytest.raises(InvalidSessionError):
        manager.rotate(_creds(t1))


def test_rotate_lost_race_raises_race_lost(manager, store):
    t1 = manager.login(LoginIn("alice@example.com", "s3cret", "C1"))
    manager.validator.store = InterleavingStore(store, hook=lambda: manager.rotate(_creds(t1)))
    with pytest.raises(RaceLostError):
        manager.rotate(_creds(t1))


def test_revoke_removes_session(manager, store):
    t1 = manager.login(LoginIn("alice@example.com", "s3cret", "C1"))
    manager.revoke(_creds(t1))

    assert store.get("P1", "C1") is None
    assert manager.validate(_creds(t1)).reason is DenyReason.UNKNOWN_SESSION
    with pytest.raises(InvalidSessionError):
        manager.revoke(_creds(t1))


def test_revoke_requires_valid_token(manager, store):
    t1 = manager.login(LoginIn("alice@example.com", "s3cret", "C1"))
    with pytest.raises(InvalidSessionError):
        manager.revoke(_creds(t1, token="forged"))
    assert store.get("P1", "C1") is not None


def test_revoke_all_keeps_current_device(manager, store):
    for client in ("C1", "C2", "C3"):
        manager.login(LoginIn("alice@example.com", "s3cret", client))

    assert manager.revoke_all("P1", except_client_id="C2") == 2
    assert [s.client_id for s in store.list_for_principal("P1")] == ["C2"]


def test_list_sessions_most_recent_first(manager, clock):
    a = manager.login(LoginIn("alice@example.com", "s3cret", "A"))
    clock.advance(seconds=1)
    manager.login(LoginIn("alice@example.com", "s3cret", "B"))
    clock.advance(seconds=1)
    manager.validate(_creds(a))

    assert [s.client_id for s in manager.list_sessions("P1")] == ["A", "B"]


def test_purge_expired(manager, clock, store, caplog):
    caplog.set_level(logging.INFO, logger="tokensession")
    manager.login(LoginIn("alice@example.com", "s3cret", "old"))
    clock.advance(days=10)
    manager.login(LoginIn("alice@example.com", "s3cret", "new"))
    clock.advance(days=5)

    assert manager.purge_expired() == 1
    assert [s.client_id for s in store.list_for_principal("P1")] == ["new"]
    (record,) = [r for r in caplog.records if r.getMessage() == "session.purged"]
    assert record.removed == 1


def test_raw_tokens_never_reach_the_logs(manager, caplog):
    caplog.set_level(logging.DEBUG, logger="tokensession")
    t1 = manager.login(LoginIn("alice@example.com", "s3cret", "C1"))
    t2 = manager.validate(_creds(t1)).issued
    manager.validate(_creds(t1))  # denied
    manager.revoke(_creds(t2))

    assert caplog.records
    for record in caplog.records:
        rendered = f"{record.getMessage()} {record.__dict__}"
        assert t1.access_token not in rendered
        assert t2.access_token not in rendered
        assert manager.issuer.hasher.hash(t1.access_token) not in rendered
