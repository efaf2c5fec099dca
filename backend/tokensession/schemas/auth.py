"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class RegisterSchema(Schema):
    """Input payload for account registration."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=8, max=128))


class LoginSchema(Schema):
    """Input payload for signing in a device."""

    # No format or length checks: any mismatch must read as "Invalid credentials"
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class PasswordChangeSchema(Schema):
    """Input payload for changing the password of the signed-in principal."""

    current_password = fields.String(required=True, load_only=True)
    new_password = fields.String(required=True, validate=validate.Length(min=8, max=128))


class PrincipalSchema(Schema):
    """Public representation of a principal."""

    id = fields.String(required=True)
    email = fields.Email(required=True)


class DeviceSessionSchema(Schema):
    """Device session listing entry (never includes token material)."""

    client_id = fields.String(required=True)
    expiry = fields.DateTime(required=True)
    created_at = fields.DateTime(required=True)
    last_used_at = fields.DateTime(allow_none=True)
    current = fields.Boolean(required=True)
