"""Token session core: issue, rotate, validate and revoke device sessions."""

from __future__ import annotations

from .dto import (
    CredentialsIn,
    DenyReason,
    IssuedToken,
    LoginIn,
    SessionConfig,
    ValidationOutcome,
)
from .hashing import TokenHasher
from .issuer import TokenIssuer, utc_now
from .manager import SessionManager
from .validator import TokenValidator

__all__ = [
    "CredentialsIn",
    "DenyReason",
    "IssuedToken",
    "LoginIn",
    "SessionConfig",
    "SessionManager",
    "TokenHasher",
    "TokenIssuer",
    "TokenValidator",
    "ValidationOutcome",
    "utc_now",
]
