"""Generic repository base for SQLAlchemy 2.x.

Repositories stay persistence-only:
- They never implement use cases or session-token policies.
- They never call commit/rollback; services own the Unit of Work.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar, cast

from sqlalchemy.orm import Session

from tokensession.core.extensions import db

E = TypeVar("E")  # SQLAlchemy mapped entity type


class BaseRepository(Generic[E]):
    """Generic, persistence-only repository for a single aggregate.

    Subclasses MUST define ``model``: the SQLAlchemy mapped class.
    """

    #: SQLAlchemy mapped model (must be set by subclasses)
    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        """Initialise the repository with an optional SQLAlchemy session.

        When no explicit session is provided the repository falls back to the
        Flask-scoped session exposed by ``tokensession.core.extensions``.
        """
        self._session: Session | None = session

    @property
    def session(self) -> Session:
        """Return the injected session, or the Flask-scoped one."""
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    def add(self, instance: E) -> E:
        """Stage a new entity and flush to materialize the PK.

        :param instance: New entity instance.
        :returns: The same instance after ``flush()``.
        """
        self.session.add(instance)
        self.flush()
        return instance

    def get(self, entity_id: Any) -> E | None:
        """Retrieve a single entity by primary key, or ``None``."""
        return self.session.get(self.model, entity_id)

    def flush(self) -> None:
        """Flush pending changes without committing."""
        self.session.flush()
