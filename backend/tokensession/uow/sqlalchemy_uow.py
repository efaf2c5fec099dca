"""
SQLAlchemy implementation of UnitOfWork for Flask.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from tokensession.core.extensions import db
from tokensession.repositories import UserRepository
from tokensession.uow.base import UnitOfWork


class SQLAlchemyRepositoryContainer:
    """Provide repository instances that share a SQLAlchemy session."""

    def __init__(self, *, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session=self.session)


class SQLAlchemyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    SQLAlchemy-backed UoW using the Flask-scoped session.

    Commits on clean exit, rolls back when the block raises.
    """

    def __init__(self) -> None:
        super().__init__(session=db.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # No-op: the session is lazily started on the first statement.
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        else:
            self.rollback()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyReadOnlyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    Read-only Unit of Work backed by the Flask-scoped session.

    Always rolls back on exit so no read transaction stays open (SQLite would
    otherwise keep its shared lock and stall session-store writes).
    ``commit()`` is disallowed.
    """

    def __init__(self) -> None:
        super().__init__(session=db.session)

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.rollback()

    def commit(self) -> None:
        """
        :raises RuntimeError: always, to prevent accidental writes.
        """
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()
