# tokensession/services/_shared/base.py
from __future__ import annotations

from dataclasses import dataclass

from tokensession.core import errors as api_errors
from tokensession.services._shared.errors import (
    ConflictError,
    InvalidCredentialsError,
    InvalidSessionError,
    NotFoundError,
    RaceLostError,
    ServiceError,
    StorageError,
)
from tokensession.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data.

    :param principal_id: Authenticated principal (``uid``), when known.
    :param client_id: Device the request came from, when known.
    :param request_id: Correlation id for logging/tracing.
    """

    principal_id: str | None = None
    client_id: str | None = None
    request_id: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Provide helpers to run read-only and read-write units of work.
    * Centralize error translation.
    * Keep services thin, orchestration-only, no web/ORM leakage.
    """

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        """
        :param ctx: Optional request-scoped context.
        :type ctx: ServiceContext | None
        """
        self.ctx = ctx or ServiceContext()

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """Create a read-write Unit of Work."""
        return SQLAlchemyUnitOfWork()

    def ro_uow(self) -> SQLAlchemyReadOnlyUnitOfWork:
        """Create a read-only Unit of Work."""
        return SQLAlchemyReadOnlyUnitOfWork()

    # -------------------------- Error handling ------------------------------

    @staticmethod
    def translate_exceptions(exc: Exception) -> Exception:
        """
        Map domain/service-level errors to API-level (HTTP) errors.

        Every authentication denial becomes the same 401 body; the specific
        cause is only visible in server logs.

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, InvalidCredentialsError):
            return api_errors.Unauthorized("Invalid credentials")

        if isinstance(exc, InvalidSessionError):
            return api_errors.Unauthorized("Invalid session")

        # RaceLostError is a ConflictError; match it first → 409 retry signal
        if isinstance(exc, RaceLostError):
            return api_errors.RaceLost()

        if isinstance(exc, NotFoundError):
            return api_errors.NotFound(str(exc))

        if isinstance(exc, ConflictError):
            return api_errors.Conflict(str(exc))

        if isinstance(exc, StorageError):
            return api_errors.ServiceUnavailable()

        # Any other ServiceError subclass → 400 Bad Request
        if isinstance(exc, ServiceError):
            return api_errors.APIError(
                message=str(exc),
                status_code=400,
                code="bad_request",
            )

        # Fallback: return untouched (will bubble up to Flask handler)
        return exc
