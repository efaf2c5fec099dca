"""
tokensession.services._shared.ports
===================================

Collection of *ports* (hexagonal interfaces) that define the contracts the
session core depends on.

Modules
-------
- :mod:`session_store`:
    Defines :class:`~.SessionStore`, :class:`~.DeviceSessionView`,
    :class:`~.SwapResult` and :class:`~.DeleteResult`: persistence of device
    sessions with an atomic compare-and-swap on the token hash.

- :mod:`credential_checker`:
    Defines :class:`~.CredentialChecker`, the pluggable capability that turns
    login credentials (password or otherwise) into a principal id.

Design Notes
------------
Concrete adapters (SQLAlchemy, Redis) live under ``tokensession.infra``.
The in-memory doubles live next to their port so unit tests can import them
without infrastructure.
"""

from __future__ import annotations

from .credential_checker import CredentialChecker, StaticCredentialChecker
from .session_store import (
    DeleteResult,
    DeviceSessionView,
    InMemorySessionStore,
    SessionStore,
    SwapResult,
)

__all__ = [
    "CredentialChecker",
    "StaticCredentialChecker",
    "SessionStore",
    "DeviceSessionView",
    "SwapResult",
    "DeleteResult",
    "InMemorySessionStore",
]
