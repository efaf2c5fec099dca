"""Service layer public API.

Re-exports
----------
- Base primitives (from ``tokensession.services._shared.base``)
    * :class:`BaseService`
    * :class:`ServiceContext`

- Session core (from ``tokensession.services.sessions``)
    * :class:`SessionManager`, :class:`SessionConfig`

- Account service (from ``tokensession.services.auth``)
    * :class:`AuthService`
"""

from __future__ import annotations

from ._shared.base import BaseService, ServiceContext
from .auth import AuthService
from .sessions import SessionConfig, SessionManager

__all__ = [
    "AuthService",
    "BaseService",
    "ServiceContext",
    "SessionConfig",
    "SessionManager",
]
