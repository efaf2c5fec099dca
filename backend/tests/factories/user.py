"""Factory Boy definition for :class:`tokensession.models.user.User`."""

from __future__ import annotations

import factory
from tokensession.models.user import User
from werkzeug.security import generate_password_hash

from tests.factories import BaseFactory

DEFAULT_PASSWORD = "Passw0rd!"


class UserFactory(BaseFactory):
    """Build persisted :class:`tokensession.models.user.User` instances.

    ``UserFactory(password="...")`` overrides the raw password; only its hash
    reaches the model.
    """

    class Meta:
        model = User

    class Params:
        password = DEFAULT_PASSWORD

    id = None  # let autoincrement handle it
    email = factory.Sequence(lambda n: f"user{n}@example.com")
    password_hash = factory.LazyAttribute(lambda o: generate_password_hash(o.password))
