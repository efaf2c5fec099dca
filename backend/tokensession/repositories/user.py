"""User repository for persistence and password checks."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from tokensession.models.user import User
from tokensession.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It NEVER issues or validates session tokens; only DB-level user management.
    """

    model = User

    # ---------------------------- Lookup helpers ----------------------------

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.email == email.lower().strip())
        result = self.session.execute(stmt).scalars().first()
        return cast(User | None, result)

    def exists_by_email(self, email: str) -> bool:
        """Return ``True`` when a user with the provided email exists."""
        stmt = select(User.id).where(User.email == email.lower().strip())
        return bool(self.session.execute(stmt).first())

    # ---------------------------- Password ops ----------------------------

    def update_password(self, user_id: int, new_password: str) -> None:
        """Update a user's password and flush the session.

        :param user_id: Identifier of the user.
        :type user_id: int
        :param new_password: Raw password to assign; model handles hashing.
        :type new_password: str
        :raises ValueError: If the user does not exist.
        """
        user = self.get(user_id)
        if not user:
            raise ValueError(f"User {user_id} not found.")
        user.password = new_password  # invokes setter → hash
        self.flush()

    def authenticate(self, email: str, password: str) -> User | None:
        """Authenticate a user by email and password.

        Unknown email and wrong password both return ``None``.
        """
        user = self.get_by_email(email)
        if not user or not user.verify_password(password):
            return None
        return user
