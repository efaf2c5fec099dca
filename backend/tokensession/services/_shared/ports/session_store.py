from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, auto
from typing import Protocol

from tokensession.services._shared.errors import DuplicateSessionError


class SwapResult(Enum):
    """Outcome of an atomic compare-and-swap of a session token."""

    OK = auto()
    NOT_FOUND = auto()
    CONFLICT = auto()


class DeleteResult(Enum):
    """Outcome of a session deletion."""

    OK = auto()
    NOT_FOUND = auto()


@dataclass(frozen=True)
class DeviceSessionView:
    """
    Read-model for a device session.

    :ivar principal_id: Owner principal id.
    :ivar client_id: Device identifier, unique within the principal.
    :ivar token_hash: Keyed hash of the current access token (never the raw token).
    :ivar expiry: Absolute expiration (UTC) of the current token.
    :ivar created_at: When the device session was first issued.
    :ivar last_used_at: Last successful validation, ``None`` until first use.
    """

    principal_id: str
    client_id: str
    token_hash: str
    expiry: datetime
    created_at: datetime
    last_used_at: datetime | None = None

    def __repr__(self) -> str:
        return (
            f"DeviceSessionView(principal_id={self.principal_id!r}, "
            f"client_id={self.client_id!r}, expiry={self.expiry.isoformat()})"
        )

    def is_expired(self, now: datetime) -> bool:
        """A token whose expiry equals ``now`` is already expired."""
        return now >= self.expiry


class SessionStore(Protocol):
    """
    Durable store for device sessions keyed by ``(principal_id, client_id)``.

    Every mutation MUST be durable before the call returns, and
    :meth:`compare_and_swap_token` MUST be atomic per key.
    """

    def create(
        self,
        *,
        principal_id: str,
        client_id: str,
        token_hash: str,
        expiry: datetime,
        now: datetime,
    ) -> DeviceSessionView:
        """
        Insert a brand-new device session.

        :raises DuplicateSessionError: If the key already exists.
        """

    def get(self, principal_id: str, client_id: str) -> DeviceSessionView | None:
        """Fetch a session snapshot, or ``None`` when absent."""

    def compare_and_swap_token(
        self,
        *,
        principal_id: str,
        client_id: str,
        expected_token_hash: str,
        new_token_hash: str,
        new_expiry: datetime,
        now: datetime,
    ) -> SwapResult:
        """
        Replace the token hash only if it still equals ``expected_token_hash``.

        :returns: ``SwapResult.OK`` on success; ``CONFLICT`` when another writer
            already replaced the token; ``NOT_FOUND`` when the session is gone.
        """

    def delete(self, principal_id: str, client_id: str) -> DeleteResult:
        """Remove a session (sign-out). Deleting twice yields ``NOT_FOUND``."""

    def list_for_principal(self, principal_id: str) -> Iterable[DeviceSessionView]:
        """List every stored session of a principal, expired ones included."""

    def delete_all_for_principal(
        self, principal_id: str, *, except_client_id: str | None = None
    ) -> int:
        """
        Remove all sessions of a principal, optionally keeping one device.

        :returns: Number of sessions removed.
        """

    def purge_expired(self, now: datetime) -> int:
        """
        Cleanup sweep: remove sessions whose expiry is ``<= now``.

        :returns: Number of sessions removed.
        """


class InMemorySessionStore(SessionStore):
    """
    In-memory session store with per-key atomic compare-and-swap.

    .. note::
       Keys hash onto a fixed set of striped locks, so memory stays bounded
       however many device ids come and go, and operations on sessions in
       different stripes never wait for each other.

    :param stripes: Number of locks keys are spread over.
    """

    def __init__(self, *, stripes: int = 64) -> None:
        if stripes < 1:
            raise ValueError("stripes must be >= 1")
        self._by_key: dict[tuple[str, str], DeviceSessionView] = {}
        self._by_principal: dict[str, set[str]] = {}
        self._stripes = tuple(threading.Lock() for _ in range(stripes))
        self._guard = threading.Lock()

    # ------------------------- helpers -------------------------

    def _lock_for(self, key: tuple[str, str]) -> threading.Lock:
        return self._stripes[hash(key) % len(self._stripes)]

    def _index_add(self, principal_id: str, client_id: str) -> None:
        with self._guard:
            self._by_principal.setdefault(principal_id, set()).add(client_id)

    def _index_discard(self, principal_id: str, client_id: str) -> None:
        with self._guard:
            clients = self._by_principal.get(principal_id)
            if clients is not None:
                clients.discard(client_id)
                if not clients:
                    del self._by_principal[principal_id]

    def _clients_of(self, principal_id: str) -> list[str]:
        with self._guard:
            return sorted(self._by_principal.get(principal_id, set()))

    # -------------------------- API ----------------------------

    def create(
        self,
        *,
        principal_id: str,
        client_id: str,
        token_hash: str,
        expiry: datetime,
        now: datetime,
    ) -> DeviceSessionView:
        key = (principal_id, client_id)
        with self._lock_for(key):
            if key in self._by_key:
                raise DuplicateSessionError(principal_id, client_id)
            view = DeviceSessionView(
                principal_id=principal_id,
                client_id=client_id,
                token_hash=token_hash,
                expiry=expiry,
                created_at=now,
            )
            self._by_key[key] = view
            self._index_add(principal_id, client_id)
            return view

    def get(self, principal_id: str, client_id: str) -> DeviceSessionView | None:
        return self._by_key.get((principal_id, client_id))

    def compare_and_swap_token(
        self,
        *,
        principal_id: str,
        client_id: str,
        expected_token_hash: str,
        new_token_hash: str,
        new_expiry: datetime,
        now: datetime,
    ) -> SwapResult:
        key = (principal_id, client_id)
        with self._lock_for(key):
            current = self._by_key.get(key)
            if current is None:
                return SwapResult.NOT_FOUND
            if current.token_hash != expected_token_hash:
                return SwapResult.CONFLICT
            self._by_key[key] = replace(
                current, token_hash=new_token_hash, expiry=new_expiry, last_used_at=now
            )
            return SwapResult.OK

    def delete(self, principal_id: str, client_id: str) -> DeleteResult:
        key = (principal_id, client_id)
        with self._lock_for(key):
            if self._by_key.pop(key, None) is None:
                return DeleteResult.NOT_FOUND
            self._index_discard(principal_id, client_id)
            return DeleteResult.OK

    def list_for_principal(self, principal_id: str) -> Iterable[DeviceSessionView]:
        for client_id in self._clients_of(principal_id):
            view = self.get(principal_id, client_id)
            if view is not None:
                yield view

    def delete_all_for_principal(
        self, principal_id: str, *, except_client_id: str | None = None
    ) -> int:
        removed = 0
        for client_id in self._clients_of(principal_id):
            if client_id == except_client_id:
                continue
            if self.delete(principal_id, client_id) is DeleteResult.OK:
                removed += 1
        return removed

    def purge_expired(self, now: datetime) -> int:
        removed = 0
        for key, view in list(self._by_key.items()):
            if view.is_expired(now) and self.delete(*key) is DeleteResult.OK:
                removed += 1
        return removed
