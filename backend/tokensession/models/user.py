"""Principal (user) model."""

from __future__ import annotations

from typing import Any

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates
from werkzeug.security import check_password_hash, generate_password_hash

from tokensession.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin

_MAX_PK = 2**63


class User(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Authenticated principal.

    Device sessions reference users by id; they are owned and mutated by the
    session store only, never through this model.

    Fields
    ------
    email : str
        Login email. Stored normalized (lowercase, trimmed) so uniqueness is
        case-insensitive.
    password_hash : str
        Opaque hashed secret (write-only setter via ``password``).
    created_at : datetime
        Creation timestamp (from mixin).
    updated_at : datetime
        Update timestamp (from mixin).
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(254), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(254), nullable=False)

    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    # -------------------- Identifiers --------------------
    @staticmethod
    def parse_id(principal_id: str) -> int | None:
        """
        Parse a client-supplied principal id into a primary key.

        Only plain ASCII digits within the signed 64-bit range are accepted;
        anything else (``"\u00b2"``, ``"-1"``, ``"1e3"``) yields ``None``.

        :param principal_id: Raw ``uid`` value.
        :returns: Integer primary key or ``None``.
        """
        if not (principal_id.isascii() and principal_id.isdigit()):
            return None
        pk = int(principal_id)
        return pk if pk < _MAX_PK else None

    # -------------------- Password API --------------------
    @property
    def password(self) -> Any:  # pragma: no cover - explicit write-only contract
        """
        Disallow reading passwords.

        :raises AttributeError: Always, to ensure password is write-only.
        """
        raise AttributeError("Password is write-only.")

    @password.setter
    def password(self, raw: str) -> None:
        """
        Hash and set the password.

        :param raw: Plain text password to hash.
        :type raw: str
        """
        if not isinstance(raw, str) or not raw:
            raise ValueError("Password must be a non-empty string.")
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        """
        Verify a password against the stored hash.

        :param raw: Plain text password candidate.
        :type raw: str
        :returns: ``True`` if it matches; otherwise ``False``.
        :rtype: bool
        """
        if not self.password_hash:
            return False
        return bool(check_password_hash(self.password_hash, raw))

    # -------------------- Validators --------------------
    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        """
        Normalize email.

        :raises ValueError: If email is missing or has no ``@``.
        """
        if not value or not isinstance(value, str):
            raise ValueError("Email is required.")
        v = value.strip().lower()
        if "@" not in v:
            raise ValueError("Email format looks invalid.")
        return v
