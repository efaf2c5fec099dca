# tokensession/services/sessions/issuer.py
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from tokensession.services._shared.errors import RaceLostError, SessionNotFoundError
from tokensession.services._shared.ports.session_store import (
    DeleteResult,
    SessionStore,
    SwapResult,
)
from tokensession.services.sessions.dto import IssuedToken, SessionConfig
from tokensession.services.sessions.hashing import (
    TokenHasher,
    generate_client_id,
    generate_token,
)

log = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware UTC now."""
    return datetime.now(UTC)


class TokenIssuer:
    """
    Issue and rotate device-session tokens.

    Every token is drawn fresh from :mod:`secrets`, hashed before it reaches
    the store, and returned raw exactly once to the caller. Rotation goes
    through :meth:`SessionStore.compare_and_swap_token` so that, of two
    requests racing with the same token, only one can win.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        config: SessionConfig,
        hasher: TokenHasher | None = None,
        clock: Clock | None = None,
    ) -> None:
        """
        :param store: Session store owning every device session record.
        :param config: Session policy (TTL, entropy, device cap, hash key).
        :param hasher: Keyed token hasher; built from ``config.hash_key`` by default.
        :param clock: Callable returning the current UTC time.
        """
        self.store = store
        self.cfg = config
        self.hasher = hasher or TokenHasher(config.hash_key)
        self.clock = clock or utc_now

    # ------------------------------------------------------------------ #
    # Issue (successful credential login)
    # ------------------------------------------------------------------ #

    def issue(self, principal_id: str, client_id: str | None = None) -> IssuedToken:
        """
        Create a device session and return its first token.

        Signing in again from a known ``client_id`` replaces that device's
        session. When the principal then holds more than ``max_devices``
        sessions, the least recently used ones are evicted.

        :param principal_id: Authenticated principal.
        :param client_id: Device id to reuse; minted when ``None``.
        :returns: Raw token, client id and expiry.
        :raises DuplicateSessionError: If a concurrent login created the same
            device session between the replace and the insert.
        """
        now = self.clock()
        client_id = client_id or generate_client_id()
        token = generate_token(self.cfg.token_bytes)
        expiry = now + self.cfg.session_ttl

        if self.store.delete(principal_id, client_id) is DeleteResult.OK:
            log.info(
                "session.replaced",
                extra={"principal_id": principal_id, "client_id": client_id},
            )

        self.store.create(
            principal_id=principal_id,
            client_id=client_id,
            token_hash=self.hasher.hash(token),
            expiry=expiry,
            now=now,
        )
        log.info("session.issued", extra={"principal_id": principal_id, "client_id": client_id})

        self._enforce_device_cap(principal_id, keep_client_id=client_id)
        return IssuedToken(
            principal_id=principal_id,
            client_id=client_id,
            access_token=token,
            expiry=expiry,
        )

    # ------------------------------------------------------------------ #
    # Rotation (on every successful use, and explicit refresh)
    # ------------------------------------------------------------------ #

    def rotate(self, principal_id: str, client_id: str, expected_token_hash: str) -> IssuedToken:
        """
        Atomically replace the token whose hash is ``expected_token_hash``.

        :returns: The next token for this device.
        :raises RaceLostError: If another request rotated the token first.
        :raises SessionNotFoundError: If the session vanished (e.g. signed out).
        """
        now = self.clock()
        token = generate_token(self.cfg.token_bytes)
        expiry = now + self.cfg.session_ttl

        result = self.store.compare_and_swap_token(
            principal_id=principal_id,
            client_id=client_id,
            expected_token_hash=expected_token_hash,
            new_token_hash=self.hasher.hash(token),
            new_expiry=expiry,
            now=now,
        )
        if result is SwapResult.CONFLICT:
            raise RaceLostError(principal_id, client_id)
        if result is SwapResult.NOT_FOUND:
            raise SessionNotFoundError(principal_id, client_id)

        return IssuedToken(
            principal_id=principal_id,
            client_id=client_id,
            access_token=token,
            expiry=expiry,
        )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _enforce_device_cap(self, principal_id: str, *, keep_client_id: str) -> None:
        """Evict least recently used sessions beyond ``max_devices``."""
        if self.cfg.max_devices is None:
            return
        others = [
            s for s in self.store.list_for_principal(principal_id) if s.client_id != keep_client_id
        ]
        overflow = len(others) + 1 - self.cfg.max_devices
        if overflow <= 0:
            return
        # never-used sessions rank by creation time
        others.sort(key=lambda s: s.last_used_at or s.created_at)
        for victim in others[:overflow]:
            self.store.delete(principal_id, victim.client_id)
            log.info(
                "session.evicted",
                extra={"principal_id": principal_id, "client_id": victim.client_id},
            )
