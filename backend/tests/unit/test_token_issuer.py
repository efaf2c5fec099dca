"""Unit tests for TokenIssuer and SessionConfig."""

from __future__ import annotations

import base64
from datetime import timedelta

import pytest
from tokensession.services._shared.errors import RaceLostError, SessionNotFoundError
from tokensession.services._shared.ports import InMemorySessionStore
from tokensession.services.sessions import SessionConfig, TokenHasher, TokenIssuer

from tests.helpers.sessions import NOW, FakeClock

KEY = b"unit-pepper"


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


def _issuer(store, clock, **overrides) -> TokenIssuer:
    cfg = SessionConfig(hash_key=KEY, **overrides)
    return TokenIssuer(store=store, config=cfg, clock=clock)


class TestIssue:
    def test_token_has_at_least_128_bits_and_only_hash_is_stored(self, store, clock):
        issued = _issuer(store, clock).issue("p1", "c1")

        raw = base64.urlsafe_b64decode(issued.access_token + "=" * (-len(issued.access_token) % 4))
        assert len(raw) >= 16

        view = store.get("p1", "c1")
        assert view.token_hash != issued.access_token
        assert view.token_hash == TokenHasher(KEY).hash(issued.access_token)

    def test_expiry_is_now_plus_ttl(self, store, clock):
        issued = _issuer(store, clock, session_ttl=timedelta(hours=2)).issue("p1", "c1")
        assert issued.expiry == NOW + timedelta(hours=2)
        assert store.get("p1", "c1").expiry == issued.expiry

    def test_missing_client_id_is_generated(self, store, clock):
        issuer = _issuer(store, clock)
        first = issuer.issue("p1")
        second = issuer.issue("p1")
        assert first.client_id and second.client_id
        assert first.client_id != second.client_id

    def test_tokens_are_unique(self, store, clock):
        issuer = _issuer(store, clock)
        tokens = {issuer.issue("p1", f"c{i}").access_token for i in range(20)}
        assert len(tokens) == 20

    def test_relogin_on_same_client_replaces_session(self, store, clock):
        issuer = _issuer(store, clock)
        old = issuer.issue("p1", "c1")
        new = issuer.issue("p1", "c1")

        view = store.get("p1", "c1")
        assert view.token_hash == issuer.hasher.hash(new.access_token)
        assert view.token_hash != issuer.hasher.hash(old.access_token)
        assert len(list(store.list_for_principal("p1"))) == 1

    def test_device_cap_evicts_least_recently_used(self, store, clock):
        issuer = _issuer(store, clock, max_devices=2)
        a = issuer.issue("p1", "a")
        clock.advance(seconds=1)
        issuer.issue("p1", "b")
        clock.advance(seconds=1)
        # touching "a" makes "b" the least recently used device
        issuer.rotate("p1", "a", issuer.hasher.hash(a.access_token))
        clock.advance(seconds=1)

        issuer.issue("p1", "c")

        assert sorted(s.client_id for s in store.list_for_principal("p1")) == ["a", "c"]

    def test_no_cap_keeps_every_device(self, store, clock):
        issuer = _issuer(store, clock, max_devices=None)
        for i in range(15):
            issuer.issue("p1", f"c{i}")
        assert len(list(store.list_for_principal("p1"))) == 15

    def test_churned_devices_leave_bounded_state(self, clock):
        store = InMemorySessionStore(stripes=8)
        issuer = _issuer(store, clock, max_devices=1)
        for _ in range(500):
            issuer.issue("p1")

        assert len(list(store.list_for_principal("p1"))) == 1
        locks = {id(store._lock_for(("p1", f"c{i}"))) for i in range(500)}
        assert len(locks) <= 8
        assert len(store._by_key) == 1


class TestRotate:
    def test_rotate_swaps_to_new_token(self, store, clock):
        issuer = _issuer(store, clock)
        first = issuer.issue("p1", "c1")
        clock.advance(minutes=10)

        second = issuer.rotate("p1", "c1", issuer.hasher.hash(first.access_token))

        assert second.access_token != first.access_token
        assert second.expiry == clock.now + issuer.cfg.session_ttl
        view = store.get("p1", "c1")
        assert view.token_hash == issuer.hasher.hash(second.access_token)
        assert view.last_used_at == clock.now

    def test_rotate_with_stale_hash_loses_race(self, store, clock):
        issuer = _issuer(store, clock)
        first = issuer.issue("p1", "c1")
        stale = issuer.hasher.hash(first.access_token)
        issuer.rotate("p1", "c1", stale)

        with pytest.raises(RaceLostError):
            issuer.rotate("p1", "c1", stale)

    def test_rotate_missing_session(self, store, clock):
        with pytest.raises(SessionNotFoundError):
            _issuer(store, clock).rotate("p1", "c1", "whatever")


class TestSessionConfig:
    def test_rejects_less_than_128_bits(self):
        with pytest.raises(ValueError):
            SessionConfig(hash_key=KEY, token_bytes=15)

    def test_rejects_empty_key_and_bad_ttl(self):
        with pytest.raises(ValueError):
            SessionConfig(hash_key=b"")
        with pytest.raises(ValueError):
            SessionConfig(hash_key=KEY, session_ttl=timedelta(0))

    def test_from_mapping(self):
        cfg = SessionConfig.from_mapping(
            {
                "TOKEN_HASH_KEY": "pepper",
                "SESSION_TTL_SECONDS": 60,
                "SESSION_TOKEN_BYTES": 24,
                "SESSION_MAX_DEVICES": 0,
            }
        )
        assert cfg.hash_key == b"pepper"
        assert cfg.session_ttl == timedelta(seconds=60)
        assert cfg.token_bytes == 24
        assert cfg.max_devices is None

    def test_defaults(self):
        cfg = SessionConfig.from_mapping({"TOKEN_HASH_KEY": "pepper"})
        assert cfg.session_ttl == timedelta(days=14)
        assert cfg.token_bytes == 32
        assert cfg.max_devices == 10
