"""Account lifecycle and password credential capability."""

from .credentials import PasswordCredentialChecker
from .dto import DeviceSessionOut, PasswordChangeIn, PrincipalOut, RegisterIn
from .service import AuthService

__all__ = [
    "AuthService",
    "DeviceSessionOut",
    "PasswordChangeIn",
    "PasswordCredentialChecker",
    "PrincipalOut",
    "RegisterIn",
]
