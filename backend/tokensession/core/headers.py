"""Names of the HTTP headers that carry a device session."""

from __future__ import annotations

from typing import Final

ACCESS_TOKEN_HEADER: Final[str] = "access-token"
CLIENT_HEADER: Final[str] = "client"
UID_HEADER: Final[str] = "uid"
EXPIRY_HEADER: Final[str] = "expiry"
TOKEN_TYPE_HEADER: Final[str] = "token-type"
TOKEN_TYPE: Final[str] = "Bearer"

# Longest ``client`` or ``uid`` value accepted; matches ``device_sessions.client_id``.
MAX_ID_HEADER_LENGTH: Final[int] = 128

SESSION_HEADERS: Final[tuple[str, ...]] = (
    ACCESS_TOKEN_HEADER,
    CLIENT_HEADER,
    UID_HEADER,
    EXPIRY_HEADER,
    TOKEN_TYPE_HEADER,
)
