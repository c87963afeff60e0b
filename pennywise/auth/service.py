"""
Authentication Service

Email + password accounts stored in the Users sheet. New passwords are
hashed with argon2. Rows created before hashing was introduced still
hold the plain password; those are compared in constant time.
"""

import hmac
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from pennywise.audit import AuditLogger
from pennywise.models.audit import AuditEventBuilder
from pennywise.models.ledger import User
from pennywise.services.storage import UserStorageInterface


_hasher = PasswordHasher()
ARGON2_PREFIX = "$argon2"
MIN_PASSWORD_LENGTH = 6


class AuthError(Exception):
    """Registration or login rejected."""


class UserExistsError(AuthError):
    def __init__(self, email: str):
        self.email = email
        super().__init__("User with this email already exists.")


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(stored: str, password: str) -> bool:
    """Check a password against a stored argon2 hash or legacy plain value."""
    if not stored.startswith(ARGON2_PREFIX):
        return hmac.compare_digest(stored.encode("utf-8"), password.encode("utf-8"))
    try:
        return _hasher.verify(stored, password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


class AuthService:
    """Registers users and checks their credentials."""

    def __init__(
        self,
        user_storage: UserStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = user_storage
        self._audit_logger = audit_logger or AuditLogger()

    async def register(self, email: str, password: str) -> User:
        """
        Create an account.

        Raises:
            AuthError: Password too short or email malformed
            UserExistsError: Email already registered (case-insensitive)
        """
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
            )
        try:
            user = User(email=email, password_hash=hash_password(password))
        except ValueError as e:
            raise AuthError(f"Invalid email address: {email}") from e

        if await self._storage.find_user(user.email):
            raise UserExistsError(user.email)

        await self._storage.append_user(user)
        await self._audit_logger.log(AuditEventBuilder.user_registered(user.email))
        return user

    async def authenticate(self, email: str, password: str) -> bool:
        """True when the email exists and the password matches."""
        user = await self._storage.find_user(email.strip().lower())
        if user and verify_password(user.password_hash, password):
            return True

        await self._audit_logger.log(
            AuditEventBuilder.user_login_failed(email.strip().lower())
        )
        return False
