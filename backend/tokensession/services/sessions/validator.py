# tokensession/services/sessions/validator.py
from __future__ import annotations

import logging

from tokensession.services._shared.errors import RaceLostError, SessionNotFoundError
from tokensession.services._shared.ports.session_store import DeviceSessionView, SessionStore
from tokensession.services.sessions.dto import CredentialsIn, DenyReason, ValidationOutcome
from tokensession.services.sessions.issuer import TokenIssuer

log = logging.getLogger(__name__)


class TokenValidator:
    """
    Authorize inbound session credentials and rotate the token on success.

    Steps
    -----
    1. Unknown ``(principal, client)`` → DENY ``UNKNOWN_SESSION``.
    2. ``now >= expiry`` → DENY ``EXPIRED`` (the record is left for the sweep).
    3. Constant-time hash comparison; mismatch → DENY ``TOKEN_MISMATCH``.
    4. Rotate with the just-validated hash as the CAS expectation; a lost
       race → DENY ``RACE_LOST``.
    5. ALLOW with the rotated token.

    The store never observes "validated but not rotated": success is decided
    by the CAS itself.
    """

    def __init__(self, *, store: SessionStore, issuer: TokenIssuer) -> None:
        self.store = store
        self.issuer = issuer

    def validate(self, creds: CredentialsIn) -> ValidationOutcome:
        """
        Validate credentials and, on success, rotate the token.

        :param creds: Presented principal hint, client id and raw token.
        :returns: ALLOW with the next token, or DENY with a reason.
        """
        session, reason = self._check(creds)
        if reason is not None:
            return self._deny(creds, reason)
        assert session is not None

        try:
            issued = self.issuer.rotate(creds.principal_id, creds.client_id, session.token_hash)
        except RaceLostError:
            return self._deny(creds, DenyReason.RACE_LOST)
        except SessionNotFoundError:
            # signed out between lookup and rotation
            return self._deny(creds, DenyReason.UNKNOWN_SESSION)

        log.debug(
            "session.rotated",
            extra={"principal_id": creds.principal_id, "client_id": creds.client_id},
        )
        return ValidationOutcome.allow(issued)

    def verify(self, creds: CredentialsIn) -> DenyReason | None:
        """
        Check credentials without rotating (used before sign-out).

        :returns: ``None`` when the credentials are currently valid.
        """
        _, reason = self._check(creds)
        return reason

    # ------------------------------------------------------------------ #

    def _check(self, creds: CredentialsIn) -> tuple[DeviceSessionView | None, DenyReason | None]:
        session = self.store.get(creds.principal_id, creds.client_id)
        if session is None:
            return None, DenyReason.UNKNOWN_SESSION
        # hash before the expiry check so both denials cost the same
        matches = self.issuer.hasher.matches(creds.token, session.token_hash)
        if session.is_expired(self.issuer.clock()):
            return session, DenyReason.EXPIRED
        if not matches:
            return session, DenyReason.TOKEN_MISMATCH
        return session, None

    @staticmethod
    def _deny(creds: CredentialsIn, reason: DenyReason) -> ValidationOutcome:
        log.info(
            "session.denied",
            extra={
                "principal_id": creds.principal_id,
                "client_id": creds.client_id,
                "reason": reason.value,
            },
        )
        return ValidationOutcome.deny(reason)
