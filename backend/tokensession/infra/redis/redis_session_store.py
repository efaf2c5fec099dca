from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import redis  # type: ignore[import-untyped]

from tokensession.services._shared.errors import DuplicateSessionError, StorageError
from tokensession.services._shared.ports import (
    DeleteResult,
    DeviceSessionView,
    SessionStore,
    SwapResult,
)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MICRO = timedelta(microseconds=1)


@dataclass(slots=True)
class RedisSessionStore(SessionStore):
    """
    Redis-backed session store with optimistic (WATCH/MULTI/EXEC) CAS.

    Layout
    ------
    ``ds:s:{principal_id}:{client_id}``
        Hash with ``token_hash``, ``expiry``, ``created_at``, ``last_used_at``
        (microseconds since epoch).
    ``ds:idx:{principal_id}``
        Set of the principal's client ids.

    Session keys carry a TTL of ``expiry + retention`` so an expired session
    is still reported as *expired* for a while before Redis drops it.

    :param r: A Redis client (already connected).
    :param retention: Extra lifetime of a key past its expiry.
    """

    r: redis.Redis
    retention: timedelta = timedelta(days=1)

    # -------------------- helpers --------------------

    @staticmethod
    def _k(principal_id: str, client_id: str) -> str:
        return f"ds:s:{principal_id}:{client_id}"

    @staticmethod
    def _kp(principal_id: str) -> str:
        return f"ds:idx:{principal_id}"

    @staticmethod
    def _to_us(dt: datetime) -> int:
        return (dt.astimezone(UTC) - _EPOCH) // _MICRO

    @staticmethod
    def _from_us(raw: bytes | str) -> datetime:
        return _EPOCH + timedelta(microseconds=int(raw))

    @staticmethod
    def _s(raw: bytes | str) -> str:
        return raw.decode() if isinstance(raw, bytes | bytearray) else str(raw)

    def _ttl(self, expiry: datetime, now: datetime) -> int:
        remaining = int((expiry - now).total_seconds())
        return max(1, remaining) + int(self.retention.total_seconds())

    def _fields(self, raw: dict) -> dict[str, str]:
        # bytes or str depending on the client's decode_responses
        return {self._s(k): self._s(v) for k, v in raw.items()}

    def _view(self, principal_id: str, client_id: str, h: dict[str, str]) -> DeviceSessionView:
        last_used = h.get("last_used_at")
        return DeviceSessionView(
            principal_id=principal_id,
            client_id=client_id,
            token_hash=h["token_hash"],
            expiry=self._from_us(h["expiry"]),
            created_at=self._from_us(h["created_at"]),
            last_used_at=self._from_us(last_used) if last_used else None,
        )

    # -------------------- API ------------------------

    def create(
        self,
        *,
        principal_id: str,
        client_id: str,
        token_hash: str,
        expiry: datetime,
        now: datetime,
    ) -> DeviceSessionView:
        key = self._k(principal_id, client_id)
        mapping = {
            "token_hash": token_hash,
            "expiry": str(self._to_us(expiry)),
            "created_at": str(self._to_us(now)),
        }
        try:
            while True:
                try:
                    with self.r.pipeline() as p:
                        p.watch(key)
                        if p.exists(key):
                            p.unwatch()
                            raise DuplicateSessionError(principal_id, client_id)
                        p.multi()
                        p.hset(key, mapping=mapping)
                        p.expire(key, self._ttl(expiry, now))
                        p.sadd(self._kp(principal_id), client_id)
                        p.execute()
                    break
                except redis.WatchError:
                    # someone touched the key; re-check existence
                    continue
        except redis.RedisError as exc:
            raise StorageError() from exc
        return DeviceSessionView(
            principal_id=principal_id,
            client_id=client_id,
            token_hash=token_hash,
            expiry=expiry,
            created_at=now,
        )

    def get(self, principal_id: str, client_id: str) -> DeviceSessionView | None:
        try:
            h = self._fields(self.r.hgetall(self._k(principal_id, client_id)))
        except redis.RedisError as exc:
            raise StorageError() from exc
        if "token_hash" not in h:
            return None
        return self._view(principal_id, client_id, h)

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
        Replace the token hash if it still matches, using optimistic locking.

        A ``WatchError`` means another writer changed the key between our read
        and ``EXEC``; we re-read, which then reports CONFLICT or NOT_FOUND.
        """
        key = self._k(principal_id, client_id)
        try:
            while True:
                try:
                    with self.r.pipeline() as p:
                        p.watch(key)
                        current = p.hget(key, "token_hash")
                        if current is None:
                            p.unwatch()
                            return SwapResult.NOT_FOUND
                        if self._s(current) != expected_token_hash:
                            p.unwatch()
                            return SwapResult.CONFLICT

                        p.multi()
                        p.hset(
                            key,
                            mapping={
                                "token_hash": new_token_hash,
                                "expiry": str(self._to_us(new_expiry)),
                                "last_used_at": str(self._to_us(now)),
                            },
                        )
                        p.expire(key, self._ttl(new_expiry, now))
                        p.execute()
                    return SwapResult.OK
                except redis.WatchError:
                    continue
        except redis.RedisError as exc:
            raise StorageError() from exc

    def delete(self, principal_id: str, client_id: str) -> DeleteResult:
        try:
            with self.r.pipeline(transaction=True) as p:
                p.delete(self._k(principal_id, client_id))
                p.srem(self._kp(principal_id), client_id)
                deleted, _ = p.execute()
        except redis.RedisError as exc:
            raise StorageError() from exc
        return DeleteResult.OK if deleted else DeleteResult.NOT_FOUND

    def _client_ids(self, principal_id: str) -> list[str]:
        return sorted(self._s(m) for m in self.r.smembers(self._kp(principal_id)))

    def list_for_principal(self, principal_id: str) -> Iterable[DeviceSessionView]:
        try:
            views: list[DeviceSessionView] = []
            stale: list[str] = []
            for client_id in self._client_ids(principal_id):
                view = self.get(principal_id, client_id)
                if view is not None:
                    views.append(view)
                else:
                    # hash dropped by TTL -> clean the index entry
                    stale.append(client_id)
            if stale:
                self.r.srem(self._kp(principal_id), *stale)
        except redis.RedisError as exc:
            raise StorageError() from exc
        return views

    def delete_all_for_principal(
        self, principal_id: str, *, except_client_id: str | None = None
    ) -> int:
        try:
            targets = [c for c in self._client_ids(principal_id) if c != except_client_id]
        except redis.RedisError as exc:
            raise StorageError() from exc
        return sum(1 for c in targets if self.delete(principal_id, c) is DeleteResult.OK)

    def purge_expired(self, now: datetime) -> int:
        removed = 0
        try:
            index_keys = list(self.r.scan_iter(match=self._kp("*")))
        except redis.RedisError as exc:
            raise StorageError() from exc
        for raw_key in index_keys:
            principal_id = self._s(raw_key)[len(self._kp("")) :]
            for view in self.list_for_principal(principal_id):
                if not view.is_expired(now):
                    continue
                if self.delete(principal_id, view.client_id) is DeleteResult.OK:
                    removed += 1
        return removed
