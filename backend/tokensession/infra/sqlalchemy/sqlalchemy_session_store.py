from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tokensession.models.device_session import DeviceSession
from tokensession.models.user import User
from tokensession.services._shared.errors import DuplicateSessionError, StorageError
from tokensession.services._shared.ports import (
    DeleteResult,
    DeviceSessionView,
    SessionStore,
    SwapResult,
)

_t = DeviceSession.__table__


@dataclass(slots=True)
class SQLAlchemySessionStore(SessionStore):
    """
    Relational session store.

    Each call runs in its own short transaction on a pooled connection and is
    committed before returning, independent of any request-scoped ORM session.
    The compare-and-swap is one conditional ``UPDATE ... WHERE token_hash =
    :expected``; the database row lock decides the winner and ``rowcount``
    tells us who it was.

    :param engine: SQLAlchemy engine bound to the application database.
    """

    engine: Engine

    # -------------------- helpers --------------------

    @staticmethod
    def _pk(principal_id: str) -> int | None:
        # principals are integer user ids in this schema
        return User.parse_id(principal_id)

    @staticmethod
    def _utc(dt: datetime) -> datetime:
        # naive values (SQLite drops tzinfo) are UTC by construction
        return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)

    def _view(self, row: Mapping[str, Any]) -> DeviceSessionView:
        return DeviceSessionView(
            principal_id=str(row["principal_id"]),
            client_id=row["client_id"],
            token_hash=row["token_hash"],
            expiry=self._utc(row["expiry"]),
            created_at=self._utc(row["created_at"]),
            last_used_at=self._utc(row["last_used_at"]) if row["last_used_at"] else None,
        )

    @staticmethod
    def _key(pk: int, client_id: str):
        return and_(_t.c.principal_id == pk, _t.c.client_id == client_id)

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
        pk = self._pk(principal_id)
        if pk is None:
            raise ValueError(f"Principal id must be numeric, got {principal_id!r}")
        values = {
            "principal_id": pk,
            "client_id": client_id,
            "token_hash": token_hash,
            "expiry": self._utc(expiry),
            "created_at": self._utc(now),
            "last_used_at": None,
        }
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(_t).values(**values))
        except IntegrityError as exc:
            raise DuplicateSessionError(principal_id, client_id) from exc
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return self._view(values)

    def get(self, principal_id: str, client_id: str) -> DeviceSessionView | None:
        pk = self._pk(principal_id)
        if pk is None:
            return None
        try:
            with self.engine.connect() as conn:
                row = conn.execute(select(_t).where(self._key(pk, client_id))).mappings().first()
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return self._view(row) if row else None

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
        pk = self._pk(principal_id)
        if pk is None:
            return SwapResult.NOT_FOUND
        stmt = (
            update(_t)
            .where(self._key(pk, client_id), _t.c.token_hash == expected_token_hash)
            .values(
                token_hash=new_token_hash,
                expiry=self._utc(new_expiry),
                last_used_at=self._utc(now),
            )
        )
        try:
            with self.engine.begin() as conn:
                if conn.execute(stmt).rowcount == 1:
                    return SwapResult.OK
                exists = conn.execute(select(_t.c.id).where(self._key(pk, client_id))).first()
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return SwapResult.CONFLICT if exists else SwapResult.NOT_FOUND

    def delete(self, principal_id: str, client_id: str) -> DeleteResult:
        pk = self._pk(principal_id)
        if pk is None:
            return DeleteResult.NOT_FOUND
        try:
            with self.engine.begin() as conn:
                count = conn.execute(delete(_t).where(self._key(pk, client_id))).rowcount
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return DeleteResult.OK if count else DeleteResult.NOT_FOUND

    def list_for_principal(self, principal_id: str) -> Iterable[DeviceSessionView]:
        pk = self._pk(principal_id)
        if pk is None:
            return []
        stmt = select(_t).where(_t.c.principal_id == pk).order_by(_t.c.client_id)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return [self._view(r) for r in rows]

    def delete_all_for_principal(
        self, principal_id: str, *, except_client_id: str | None = None
    ) -> int:
        pk = self._pk(principal_id)
        if pk is None:
            return 0
        stmt = delete(_t).where(_t.c.principal_id == pk)
        if except_client_id is not None:
            stmt = stmt.where(_t.c.client_id != except_client_id)
        try:
            with self.engine.begin() as conn:
                return int(conn.execute(stmt).rowcount)
        except SQLAlchemyError as exc:
            raise StorageError() from exc

    def purge_expired(self, now: datetime) -> int:
        try:
            with self.engine.begin() as conn:
                return int(conn.execute(delete(_t).where(_t.c.expiry <= self._utc(now))).rowcount)
        except SQLAlchemyError as exc:
            raise StorageError() from exc
