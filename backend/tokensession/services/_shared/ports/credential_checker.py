from __future__ import annotations

from typing import Protocol


class CredentialChecker(Protocol):
    """
    Capability that turns login credentials into a principal id.

    Implementations MUST NOT reveal why a check failed: an unknown identifier
    and a wrong secret both return ``None``.
    """

    def authenticate(self, identifier: str, secret: str) -> str | None: ...


class StaticCredentialChecker(CredentialChecker):
    """Dictionary-backed checker used in unit tests: ``{identifier: (secret, principal_id)}``."""

    def __init__(self, accounts: dict[str, tuple[str, str]] | None = None) -> None:
        self._accounts = dict(accounts or {})

    def add(self, identifier: str, secret: str, principal_id: str) -> None:
        self._accounts[identifier.strip().lower()] = (secret, principal_id)

    def authenticate(self, identifier: str, secret: str) -> str | None:
        entry = self._accounts.get(identifier.strip().lower())
        if entry is None or entry[0] != secret:
            return None
        return entry[1]
