"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never import Flask or HTTP
helpers. They are the stable contract between session stores, the session
core and the API layer.

The translation to HTTP responses (RFC 7807) is handled by
``tokensession/core/errors.py`` via ``BaseService.translate_exceptions()``.

None of these errors ever carries a raw token or a token hash.
"""

from __future__ import annotations

from dataclasses import dataclass

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from stores or domain logic.
    """

    pass


# --------------------------------------------------------------------------- #
# Specific domain-level errors
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


class SessionNotFoundError(NotFoundError):
    """Raised when a ``(principal, client)`` device session does not exist."""

    def __init__(self, principal_id: str, client_id: str) -> None:
        super().__init__(entity="DeviceSession", key=f"{principal_id}/{client_id}")


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:
        return f"Conflict on {self.entity}: {self.detail}"


class DuplicateSessionError(ConflictError):
    """Raised by ``SessionStore.create`` when the device session already exists."""

    def __init__(self, principal_id: str, client_id: str) -> None:
        super().__init__(
            entity="DeviceSession",
            detail=f"session already exists for {principal_id}/{client_id}",
        )


class RaceLostError(ConflictError):
    """
    Raised when a rotation lost a compare-and-swap race.

    The requester proved knowledge of a valid token moments ago; callers should
    retry with the token from the winning response instead of treating this as
    an authentication failure.
    """

    def __init__(self, principal_id: str, client_id: str) -> None:
        super().__init__(
            entity="DeviceSession",
            detail=f"concurrent rotation for {principal_id}/{client_id}",
        )


class InvalidCredentialsError(ServiceError):
    """Raised when login credentials are rejected (cause deliberately hidden)."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class InvalidSessionError(ServiceError):
    """
    Raised when presented session credentials are rejected.

    Unknown sessions, expired sessions and token mismatches all surface as this
    single error so callers cannot distinguish the cause.
    """

    def __init__(self, message: str = "Invalid session") -> None:
        super().__init__(message)


class StorageError(ServiceError):
    """Raised when the session backend fails (I/O, connectivity). Never retried here."""

    def __init__(self, message: str = "Session storage unavailable") -> None:
        super().__init__(message)
