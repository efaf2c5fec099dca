"""Token generation and keyed hashing."""

from __future__ import annotations

import hashlib
import hmac
import secrets


class TokenHasher:
    """
    HMAC-SHA256 over access tokens, keyed with a server-side pepper.

    Tokens carry at least 128 random bits, so a fast keyed hash is enough; a
    leaked table of hashes is useless without the key.
    """

    def __init__(self, key: bytes) -> None:
        self._key = key

    def hash(self, token: str) -> str:
        """Return the hex digest stored in place of ``token``."""
        return hmac.new(self._key, token.encode("utf-8"), hashlib.sha256).hexdigest()

    def matches(self, token: str, token_hash: str) -> bool:
        """Constant-time comparison of ``token`` against a stored hash."""
        return hmac.compare_digest(self.hash(token), token_hash)


def generate_token(nbytes: int) -> str:
    """Return a URL-safe random token drawn from ``nbytes`` of entropy."""
    return secrets.token_urlsafe(nbytes)


def generate_client_id() -> str:
    """Return a new opaque device identifier."""
    return secrets.token_urlsafe(16)
