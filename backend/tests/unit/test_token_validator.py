"""Unit tests for TokenValidator: rotation on use, expiry and races."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import fakeredis
import pytest
from tokensession.core.extensions import db
from tokensession.infra.redis.redis_session_store import RedisSessionStore
from tokensession.infra.sqlalchemy.sqlalchemy_session_store import SQLAlchemySessionStore
from tokensession.models.user import User
from tokensession.services._shared.ports import InMemorySessionStore
from tokensession.services.sessions import (
    CredentialsIn,
    DenyReason,
    SessionConfig,
    TokenIssuer,
    TokenValidator,
)

from tests.helpers.sessions import BarrierStore, FakeClock, InterleavingStore

TTL = timedelta(days=14)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture()
def issuer(store, clock) -> TokenIssuer:
    return TokenIssuer(store=store, config=SessionConfig(hash_key=b"k", session_ttl=TTL), clock=clock)


@pytest.fixture()
def validator(store, issuer) -> TokenValidator:
    return TokenValidator(store=store, issuer=issuer)


def _creds(issued, token=None) -> CredentialsIn:
    return CredentialsIn(
        principal_id=issued.principal_id,
        client_id=issued.client_id,
        token=issued.access_token if token is None else token,
    )


def test_each_use_rotates_and_burns_previous_token(issuer, validator, clock):
    t1 = issuer.issue("P1", "C1")

    clock.advance(minutes=1)
    first = validator.validate(_creds(t1))
    assert first.allowed is True
    t2 = first.issued
    assert t2.access_token != t1.access_token
    assert t2.expiry == clock.now + TTL

    # T1 is spent
    replay = validator.validate(_creds(t1))
    assert replay.allowed is False
    assert replay.reason is DenyReason.TOKEN_MISMATCH

    second = validator.validate(_creds(t2))
    assert second.allowed is True
    assert second.issued.access_token not in {t1.access_token, t2.access_token}


def test_unknown_session(issuer, validator):
    t1 = issuer.issue("P1", "C1")

    outcome = validator.validate(CredentialsIn("P1", "other-device", t1.access_token))
    assert outcome.allowed is False
    assert outcome.reason is DenyReason.UNKNOWN_SESSION
    assert outcome.issued is None

    outcome = validator.validate(CredentialsIn("P2", "C1", t1.access_token))
    assert outcome.reason is DenyReason.UNKNOWN_SESSION


def test_expiry_equal_to_now_is_expired(issuer, validator, store, clock):
    t1 = issuer.issue("P1", "C1")
    clock.now = t1.expiry

    outcome = validator.validate(_creds(t1))

    assert outcome.allowed is False
    assert outcome.reason is DenyReason.EXPIRED


def test_past_expiry_denies_without_touching_the_store(issuer, validator, store, clock):
    t1 = issuer.issue("P1", "C1")
    before = store.get("P1", "C1")
    clock.advance(days=15)

    outcome = validator.validate(_creds(t1))

    assert outcome.reason is DenyReason.EXPIRED
    assert store.get("P1", "C1") == before


def test_expired_wins_over_mismatch(issuer, validator, clock):
    t1 = issuer.issue("P1", "C1")
    clock.advance(days=15)
    assert validator.validate(_creds(t1, token="garbage")).reason is DenyReason.EXPIRED


def test_verify_does_not_rotate(issuer, validator, store):
    t1 = issuer.issue("P1", "C1")
    before = store.get("P1", "C1")

    assert validator.verify(_creds(t1)) is None
    assert validator.verify(_creds(t1, token="nope")) is DenyReason.TOKEN_MISMATCH
    assert store.get("P1", "C1") == before


def test_race_lost_is_retryable():
    assert DenyReason.RACE_LOST.is_retryable is True
    assert DenyReason.TOKEN_MISMATCH.is_retryable is False


# ----------------------------- Races -------------------------------------- #


def _race_backend(name, request):
    if name == "memory":
        return InMemorySessionStore(), "1"
    if name == "redis":
        return RedisSessionStore(r=fakeredis.FakeRedis()), "1"
    request.getfixturevalue("app")
    user = User(email="racer@example.com")
    user.password = "Passw0rd!"
    db.session.add(user)
    db.session.commit()
    return SQLAlchemySessionStore(engine=db.engine), str(user.id)


@pytest.mark.parametrize("backend", ["memory", "sqlalchemy", "redis"])
def test_interleaved_requests_with_same_token_have_one_winner(backend, request, clock):
    inner, principal = _race_backend(backend, request)
    issuer = TokenIssuer(store=inner, config=SessionConfig(hash_key=b"k"), clock=clock)
    t1 = issuer.issue(principal, "C1")
    creds = _creds(t1)

    outcomes = []
    plain = TokenValidator(store=inner, issuer=issuer)
    interleaved = InterleavingStore(inner, hook=lambda: outcomes.append(plain.validate(creds)))
    racing = TokenValidator(store=interleaved, issuer=issuer)

    late = racing.validate(creds)
    early = outcomes[0]

    assert early.allowed is True
    assert late.allowed is False
    assert late.reason is DenyReason.RACE_LOST
    view = inner.get(principal, "C1")
    assert view.token_hash == issuer.hasher.hash(early.issued.access_token)


def test_threads_racing_on_same_token_have_one_winner(clock):
    inner = InMemorySessionStore()
    issuer = TokenIssuer(store=inner, config=SessionConfig(hash_key=b"k"), clock=clock)
    validator = TokenValidator(store=BarrierStore(inner), issuer=issuer)
    t1 = issuer.issue("P1", "C1")

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = list(pool.map(validator.validate, [_creds(t1), _creds(t1)]))

    allowed = [o for o in outcomes if o.allowed]
    denied = [o for o in outcomes if not o.allowed]
    assert len(allowed) == 1
    assert len(denied) == 1
    assert denied[0].reason is DenyReason.RACE_LOST
