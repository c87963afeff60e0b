"""Authentication package."""

from pennywise.auth.service import (
    AuthError,
    AuthService,
    UserExistsError,
    hash_password,
    verify_password,
)

__all__ = [
    "AuthError",
    "AuthService",
    "UserExistsError",
    "hash_password",
    "verify_password",
]
