# tokensession/services/auth/credentials.py
from __future__ import annotations

from tokensession.services._shared.base import BaseService
from tokensession.services._shared.ports.credential_checker import CredentialChecker


class PasswordCredentialChecker(BaseService, CredentialChecker):
    """
    Email + password capability backed by :class:`UserRepository`.

    Returns the principal id as a string, or ``None`` for an unknown email or
    a wrong password alike.
    """

    def authenticate(self, identifier: str, secret: str) -> str | None:
        with self.ro_uow() as uow:
            user = uow.users.authenticate(identifier, secret)
            return None if user is None else str(user.id)
