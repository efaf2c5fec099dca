# tokensession/services/auth/service.py
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from tokensession.models.user import User
from tokensession.services._shared.base import BaseService, ServiceContext
from tokensession.services._shared.errors import (
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    ServiceError,
)
from tokensession.services.auth.dto import (
    DeviceSessionOut,
    PasswordChangeIn,
    PrincipalOut,
    RegisterIn,
)
from tokensession.services.sessions import SessionManager

log = logging.getLogger(__name__)


class AuthService(BaseService):
    """
    Account lifecycle around the session core (register / profile / password).

    Token issuance, validation and revocation stay in :class:`SessionManager`;
    this service only orchestrates the user table and calls into the manager
    where an account change must invalidate sessions.
    """

    def __init__(self, *, sessions: SessionManager, ctx: ServiceContext | None = None) -> None:
        """
        :param sessions: Session core used to list and revoke device sessions.
        :param ctx: Optional request-scoped context.
        """
        super().__init__(ctx=ctx)
        self.sessions = sessions

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #

    def register(self, dto: RegisterIn) -> PrincipalOut:
        """
        Create a principal.

        :raises ConflictError: If the email is already registered.
        :raises ServiceError: If the model rejects the input.
        """
        try:
            with self.rw_uow() as uow:
                if uow.users.exists_by_email(dto.email):
                    raise ConflictError("User", "email already registered")
                user = User(email=dto.email)
                user.password = dto.password
                uow.users.add(user)
                out = PrincipalOut(id=str(user.id), email=user.email)
        except IntegrityError as exc:
            # lost a race against a concurrent registration
            raise ConflictError("User", "email already registered") from exc
        except ValueError as exc:
            raise ServiceError(str(exc)) from exc

        log.info("principal.registered", extra={"principal_id": out.id})
        return out

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def get_principal(self, principal_id: str) -> PrincipalOut:
        """
        :raises NotFoundError: If the principal does not exist.
        """
        with self.ro_uow() as uow:
            pk = User.parse_id(principal_id)
            user = uow.users.get(pk) if pk is not None else None
            if user is None:
                raise NotFoundError("User", principal_id)
            return PrincipalOut(id=str(user.id), email=user.email)

    def list_sessions(self, principal_id: str, current_client_id: str) -> list[DeviceSessionOut]:
        """List the principal's devices, flagging the one making the request."""
        return [
            DeviceSessionOut(
                client_id=s.client_id,
                expiry=s.expiry,
                created_at=s.created_at,
                last_used_at=s.last_used_at,
                current=s.client_id == current_client_id,
            )
            for s in self.sessions.list_sessions(principal_id)
        ]

    # ------------------------------------------------------------------ #
    # Password change
    # ------------------------------------------------------------------ #

    def change_password(self, dto: PasswordChangeIn) -> int:
        """
        Change the password and sign out every other device.

        The user row is committed first; sessions are revoked afterwards so a
        failed commit never logs devices out.

        :returns: Number of revoked device sessions.
        :raises InvalidCredentialsError: If ``current_password`` is wrong.
        """
        with self.rw_uow() as uow:
            pk = User.parse_id(dto.principal_id)
            user = uow.users.get(pk) if pk is not None else None
            if user is None or not user.verify_password(dto.current_password):
                raise InvalidCredentialsError()
            try:
                uow.users.update_password(user.id, dto.new_password)
            except ValueError as exc:
                raise ServiceError(str(exc)) from exc

        revoked = self.sessions.revoke_all(dto.principal_id, except_client_id=dto.client_id)
        log.info(
            "principal.password_changed",
            extra={"principal_id": dto.principal_id, "client_id": dto.client_id},
        )
        return revoked
