"""Device session table.

Rows are written exclusively by
:class:`tokensession.infra.sqlalchemy.sqlalchemy_session_store.SQLAlchemySessionStore`
through Core statements; the ORM class exists so metadata and migrations know
the table.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tokensession.core.extensions import db
from tokensession.core.headers import MAX_ID_HEADER_LENGTH

from .base import PKMixin, ReprMixin


class DeviceSession(PKMixin, ReprMixin, db.Model):
    """
    One authenticated client instance (browser, app install) of a principal.

    Fields
    ------
    principal_id : int
        Owning user; sessions disappear with the user (``ON DELETE CASCADE``).
    client_id : str
        Device identifier, unique within the principal.
    token_hash : str
        Keyed hash of the current access token (hex HMAC-SHA256).
    expiry : datetime
        Absolute expiry of the current token.
    last_used_at : datetime | None
        Last successful validation.
    created_at : datetime
        Sign-in time of the device.
    """

    __tablename__ = "device_sessions"

    principal_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[str] = mapped_column(String(MAX_ID_HEADER_LENGTH), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    expiry: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("principal_id", "client_id", name="uq_device_sessions_principal_client"),
        Index("ix_device_sessions_expiry", "expiry"),
    )
