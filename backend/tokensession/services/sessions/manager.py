# tokensession/services/sessions/manager.py
from __future__ import annotations

import logging

from tokensession.services._shared.errors import (
    InvalidCredentialsError,
    InvalidSessionError,
    RaceLostError,
)
from tokensession.services._shared.ports.credential_checker import CredentialChecker
from tokensession.services._shared.ports.session_store import (
    DeleteResult,
    DeviceSessionView,
    SessionStore,
)
from tokensession.services.sessions.dto import (
    CredentialsIn,
    DenyReason,
    IssuedToken,
    LoginIn,
    SessionConfig,
    ValidationOutcome,
)
from tokensession.services.sessions.issuer import Clock, TokenIssuer
from tokensession.services.sessions.validator import TokenValidator

log = logging.getLogger(__name__)


class SessionManager:
    """
    Fixed entry point of the token session core.

    Exposes ``login``, ``validate``, ``rotate`` and ``revoke`` plus a few
    housekeeping helpers. Credential checking is a capability passed in at
    construction, so password login and any other scheme share one code path.
    Results are plain return values; the manager never calls back into the
    web layer.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        config: SessionConfig,
        credentials: CredentialChecker,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.cfg = config
        self.credentials = credentials
        self.issuer = TokenIssuer(store=store, config=config, clock=clock)
        self.validator = TokenValidator(store=store, issuer=self.issuer)

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn) -> IssuedToken:
        """
        Check credentials and open a device session.

        :raises InvalidCredentialsError: Whatever the cause (unknown identifier
            or wrong secret).
        """
        principal_id = self.credentials.authenticate(dto.identifier, dto.secret)
        if principal_id is None:
            raise InvalidCredentialsError()
        return self.issuer.issue(principal_id, dto.client_id)

    # ------------------------------------------------------------------ #
    # Validate / rotate / revoke
    # ------------------------------------------------------------------ #

    def validate(self, creds: CredentialsIn) -> ValidationOutcome:
        """Authorize a request; on ALLOW the outcome carries the rotated token."""
        return self.validator.validate(creds)

    def rotate(self, creds: CredentialsIn) -> IssuedToken:
        """
        Explicit refresh: exchange a valid token for the next one.

        :raises RaceLostError: If a concurrent request rotated first.
        :raises InvalidSessionError: For any other denial.
        """
        outcome = self.validator.validate(creds)
        if outcome.allowed and outcome.issued is not None:
            return outcome.issued
        if outcome.reason is DenyReason.RACE_LOST:
            raise RaceLostError(creds.principal_id, creds.client_id)
        raise InvalidSessionError()

    def revoke(self, creds: CredentialsIn) -> None:
        """
        Sign out the presenting device.

        :raises InvalidSessionError: If the credentials are not currently valid.
        """
        if self.validator.verify(creds) is not None:
            raise InvalidSessionError()
        if self.store.delete(creds.principal_id, creds.client_id) is DeleteResult.NOT_FOUND:
            # concurrent sign-out already removed it
            raise InvalidSessionError()
        log.info(
            "session.revoked",
            extra={"principal_id": creds.principal_id, "client_id": creds.client_id},
        )

    # ------------------------------------------------------------------ #
    # Housekeeping
    # ------------------------------------------------------------------ #

    def revoke_all(self, principal_id: str, *, except_client_id: str | None = None) -> int:
        """Remove every session of a principal, optionally keeping the current device."""
        removed = self.store.delete_all_for_principal(
            principal_id, except_client_id=except_client_id
        )
        log.info(
            "session.revoked_all",
            extra={"principal_id": principal_id, "client_id": except_client_id},
        )
        return removed

    def list_sessions(self, principal_id: str) -> list[DeviceSessionView]:
        """Return the principal's sessions, most recently used first."""
        sessions = list(self.store.list_for_principal(principal_id))
        sessions.sort(key=lambda s: s.last_used_at or s.created_at, reverse=True)
        return sessions

    def purge_expired(self) -> int:
        """Cleanup sweep over the whole store."""
        removed = self.store.purge_expired(self.issuer.clock())
        log.info("session.purged", extra={"removed": removed})
        return removed
