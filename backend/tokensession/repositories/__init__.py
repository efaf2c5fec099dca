from tokensession.repositories.base import BaseRepository
from tokensession.repositories.user import UserRepository

__all__ = ["BaseRepository", "UserRepository"]
