"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    DeviceSessionSchema,
    LoginSchema,
    PasswordChangeSchema,
    PrincipalSchema,
    RegisterSchema,
)

__all__ = [
    "DeviceSessionSchema",
    "LoginSchema",
    "PasswordChangeSchema",
    "PrincipalSchema",
    "RegisterSchema",
]
