# tokensession/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for account registration.

    :param email: Login email (normalized by the model).
    :type email: str
    :param password: Raw password (hashed by the model).
    :type password: str
    """

    email: str
    password: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class PasswordChangeIn:
    """
    Input DTO for a password change from an authenticated device.

    :param principal_id: Authenticated principal.
    :param client_id: Device performing the change; its session survives.
    :param current_password: Current password, re-checked before the change.
    :param new_password: Replacement password.
    """

    principal_id: str
    client_id: str
    current_password: str = field(repr=False)
    new_password: str = field(repr=False)


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class PrincipalOut:
    """
    Public view of a principal.

    :param id: Principal id (the ``uid`` header value).
    :param email: Normalized email.
    """

    id: str
    email: str


@dataclass(frozen=True, slots=True)
class DeviceSessionOut:
    """
    Public view of a device session (no token material).

    :param client_id: Device identifier.
    :param expiry: Expiry of the current token.
    :param created_at: Sign-in time of the device.
    :param last_used_at: Last successful validation.
    :param current: ``True`` for the device making the request.
    """

    client_id: str
    expiry: datetime
    created_at: datetime
    last_used_at: datetime | None
    current: bool
