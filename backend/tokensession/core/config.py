"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

# Accepted values for ``SESSION_STORE``
SESSION_STORE_BACKENDS: Final[frozenset[str]] = frozenset({"sqlalchemy", "redis", "memory"})


# Load .env in development (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: int
        Value returned when the variable is unset or blank.

    Returns
    -------
    int
        Parsed integer value.

    Raises
    ------
    ValueError
        If the variable is set but is not an integer.
    """
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    try:
        return int(val.strip())
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer, got {val!r}") from exc


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret. Defaults to a development-safe placeholder and should be
        overridden in production.
    TOKEN_HASH_KEY: str
        Server-side pepper used to HMAC access tokens before they are stored.
    SESSION_TTL_SECONDS: int
        Inactivity window granted to a device session on every rotation.
    SESSION_TOKEN_BYTES: int
        Random bytes drawn per access token (minimum 16, i.e. 128 bits).
    SESSION_MAX_DEVICES: int
        Upper bound of device sessions per principal; ``0`` disables the cap.
    SESSION_RETENTION_SECONDS: int
        How long expired sessions stay visible (as *expired*) in Redis before
        the key TTL removes them.
    SESSION_STORE: str
        Session store backend: ``sqlalchemy``, ``redis`` or ``memory``.
    REDIS_URL: str | None
        Redis connection URL; required when ``SESSION_STORE == "redis"``.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    TOKEN_HASH_KEY = os.getenv("TOKEN_HASH_KEY", "CHANGE_ME_TOKEN_PEPPER")

    # Sessions
    SESSION_TTL_SECONDS = env_int("SESSION_TTL_SECONDS", 14 * 24 * 3600)
    SESSION_TOKEN_BYTES = env_int("SESSION_TOKEN_BYTES", 32)
    SESSION_MAX_DEVICES = env_int("SESSION_MAX_DEVICES", 10)
    SESSION_RETENTION_SECONDS = env_int("SESSION_RETENTION_SECONDS", 24 * 3600)
    SESSION_STORE = os.getenv("SESSION_STORE", "sqlalchemy").strip().lower()
    REDIS_URL = os.getenv("REDIS_URL")

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development."""

    DEBUG = env_bool("FLASK_DEBUG", True)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Keeps the session store in-process so tests never need Redis.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SESSION_STORE = "memory"
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments."""

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
