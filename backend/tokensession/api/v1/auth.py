"""Token session endpoints: register, sign in, validate, sign out."""

from __future__ import annotations

from flask import Blueprint, request

from tokensession.api.deps import (
    apply_session_headers,
    current_session,
    json_response,
    read_client_id,
    read_credentials,
    require_session,
    service_context,
    timing,
)
from tokensession.core.errors import Unauthorized
from tokensession.core.sessions import get_session_manager
from tokensession.schemas import (
    DeviceSessionSchema,
    LoginSchema,
    PasswordChangeSchema,
    PrincipalSchema,
    RegisterSchema,
)
from tokensession.services.auth import AuthService, PasswordChangeIn, RegisterIn
from tokensession.services.sessions import LoginIn

bp = Blueprint("auth", __name__, url_prefix="/auth")

register_schema = RegisterSchema()
login_schema = LoginSchema()
password_schema = PasswordChangeSchema()
principal_schema = PrincipalSchema()
device_session_list_schema = DeviceSessionSchema(many=True)


def _auth_service() -> AuthService:
    return AuthService(sessions=get_session_manager(), ctx=service_context())


@bp.post("")
@timing
def register():
    """Register a new principal and return its public representation."""

    payload = register_schema.load(request.get_json(silent=True) or {})
    principal = _auth_service().register(
        RegisterIn(email=payload["email"], password=payload["password"])
    )
    return json_response({"data": principal_schema.dump(principal)}, status=201)


@bp.post("/sign_in")
@timing
def sign_in():
    """Check credentials and open a device session.

    An existing ``client`` header re-uses that device id; otherwise one is
    generated. The token travels back in the response headers only.
    """

    data = login_schema.load(request.get_json(silent=True) or {})
    client_id = read_client_id()
    issued = get_session_manager().login(
        LoginIn(identifier=data["email"], secret=data["password"], client_id=client_id)
    )
    principal = _auth_service().get_principal(issued.principal_id)
    response = json_response({"data": principal_schema.dump(principal)})
    return apply_session_headers(response, issued)


@bp.get("/validate_token")
@require_session
@timing
def validate_token():
    """Return the principal behind the presented headers (and rotate them)."""

    principal = _auth_service().get_principal(current_session().principal_id)
    return json_response({"data": principal_schema.dump(principal)})


@bp.delete("/sign_out")
@timing
def sign_out():
    """Revoke the device session identified by the presented headers."""

    creds = read_credentials()
    if creds is None:
        raise Unauthorized("Invalid session")
    get_session_manager().revoke(creds)
    return json_response({"data": {"signed_out": True}})


@bp.get("/sessions")
@require_session
@timing
def list_sessions():
    """List the caller's device sessions, most recently used first."""

    issued = current_session()
    sessions = _auth_service().list_sessions(issued.principal_id, issued.client_id)
    return json_response({"data": device_session_list_schema.dump(sessions)})


@bp.put("/password")
@require_session
@timing
def change_password():
    """Change the password and sign out every other device."""

    data = password_schema.load(request.get_json(silent=True) or {})
    issued = current_session()
    revoked = _auth_service().change_password(
        PasswordChangeIn(
            principal_id=issued.principal_id,
            client_id=issued.client_id,
            current_password=data["current_password"],
            new_password=data["new_password"],
        )
    )
    return json_response({"data": {"revoked_sessions": revoked}})
