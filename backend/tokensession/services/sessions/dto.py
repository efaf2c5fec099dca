# tokensession/services/sessions/dto.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

# Minimum token entropy: 16 random bytes = 128 bits.
MIN_TOKEN_BYTES = 16

# ------------------------------ Config DTO -------------------------------- #


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """
    Explicit session policy handed to the issuer at construction.

    :param hash_key: Server-side pepper for keyed token hashing.
    :type hash_key: bytes
    :param session_ttl: Lifetime granted on issue and on every rotation.
    :type session_ttl: timedelta
    :param token_bytes: Random bytes per token (``>= 16``).
    :type token_bytes: int
    :param max_devices: Cap of device sessions per principal (``None`` = no cap).
    :type max_devices: int | None
    """

    hash_key: bytes
    session_ttl: timedelta = timedelta(days=14)
    token_bytes: int = 32
    max_devices: int | None = 10

    def __post_init__(self) -> None:
        if not self.hash_key:
            raise ValueError("hash_key must be a non-empty byte string.")
        if self.token_bytes < MIN_TOKEN_BYTES:
            raise ValueError(f"token_bytes must be >= {MIN_TOKEN_BYTES} (128 bits of entropy).")
        if self.session_ttl <= timedelta(0):
            raise ValueError("session_ttl must be positive.")
        if self.max_devices is not None and self.max_devices < 1:
            raise ValueError("max_devices must be >= 1 or None.")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> SessionConfig:
        """
        Build the policy from a Flask-style config mapping.

        :param config: Mapping holding ``TOKEN_HASH_KEY``, ``SESSION_TTL_SECONDS``,
            ``SESSION_TOKEN_BYTES`` and ``SESSION_MAX_DEVICES``.
        :returns: Validated configuration.
        """
        max_devices = int(config.get("SESSION_MAX_DEVICES", 10) or 0)
        return cls(
            hash_key=str(config["TOKEN_HASH_KEY"]).encode("utf-8"),
            session_ttl=timedelta(seconds=int(config.get("SESSION_TTL_SECONDS", 14 * 24 * 3600))),
            token_bytes=int(config.get("SESSION_TOKEN_BYTES", 32)),
            max_devices=max_devices or None,
        )


# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class CredentialsIn:
    """
    Session credentials presented with a request.

    :param principal_id: Principal hint (``uid`` header).
    :type principal_id: str
    :param client_id: Device identifier (``client`` header).
    :type client_id: str
    :param token: Raw access token (``access-token`` header).
    :type token: str
    """

    principal_id: str
    client_id: str
    token: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param identifier: Login identifier (email).
    :type identifier: str
    :param secret: Raw password or other secret checked by the capability.
    :type secret: str
    :param client_id: Existing device id to re-use; a new one is minted when ``None``.
    :type client_id: str | None
    """

    identifier: str
    secret: str = field(repr=False)
    client_id: str | None = None


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class IssuedToken:
    """
    Freshly issued or rotated token, to be transmitted back to the client.

    The raw ``access_token`` is excluded from ``repr`` so it never ends up in
    logs or tracebacks.

    :param principal_id: Owner principal id (``uid``).
    :param client_id: Device identifier (``client``).
    :param access_token: Raw bearer token (``access-token``).
    :param expiry: Absolute expiry (UTC).
    """

    principal_id: str
    client_id: str
    access_token: str = field(repr=False)
    expiry: datetime


class DenyReason(str, Enum):
    """Why a validation was denied."""

    UNKNOWN_SESSION = "unknown_session"
    EXPIRED = "expired"
    TOKEN_MISMATCH = "token_mismatch"
    RACE_LOST = "race_lost"

    @property
    def is_retryable(self) -> bool:
        """Only a lost rotation race is a transient condition."""
        return self is DenyReason.RACE_LOST


@dataclass(frozen=True, slots=True)
class ValidationOutcome:
    """
    Result of validating session credentials.

    :param allowed: ``True`` when the request is authorized.
    :param reason: Denial reason (``None`` on ALLOW).
    :param issued: Rotated token to hand back (``None`` on DENY).
    """

    allowed: bool
    reason: DenyReason | None = None
    issued: IssuedToken | None = None

    @classmethod
    def allow(cls, issued: IssuedToken) -> ValidationOutcome:
        return cls(allowed=True, issued=issued)

    @classmethod
    def deny(cls, reason: DenyReason) -> ValidationOutcome:
        return cls(allowed=False, reason=reason)
