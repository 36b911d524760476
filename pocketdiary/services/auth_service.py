"""
Pocket Diary Backend: Auth Service (Authentication Gate + Capability Check)
============================================================================

What:  Registration, login, email availability and the authorization-by-key
       check that guards every note and account operation.
How:   Turns plaintext request values into their stored form (email and
       name encrypted with the application key, password hashed) and
       delegates to UserService.
Who:   Called by the user routes, AccountService and NoteService.

Flow:
    register ─▶ per-user key generated and stored
    login    ─▶ {key, name, theme} returned; no session token
    later    ─▶ every request presents (key, email); authorize() proves the
                pair belongs to one stored user before anything else runs

The capability check is a database membership test, not a signature check.
A leaked key without the matching email is useless, and a correct email
with a wrong key is rejected.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from pocketdiary.config import settings
from pocketdiary.exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
    UserNotFoundError,
)
from pocketdiary.models.user import User
from pocketdiary.schemas.user import LoginResponse
from pocketdiary.services import crypto
from pocketdiary.services.user_service import user_service

logger = logging.getLogger(__name__)


def encrypt_with_app_key(value: str) -> str:
    """Encrypt an email or name under the application key."""
    return crypto.encrypt(settings.encrypt_key, value)


def decrypt_with_app_key(value: str) -> str:
    """Decrypt an email or name stored under the application key."""
    return crypto.decrypt(settings.encrypt_key, value)


class AuthService:
    """Authentication gate and authorization-by-key check."""

    async def register(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        name: str,
        theme: int,
    ) -> str:
        """
        Create an account and return its per-user key.

        Raises:
            DuplicateEmailError: The email is already registered.
            CryptoError: The application key is missing or malformed.
        """
        return await user_service.create_user(
            db,
            encrypted_email=encrypt_with_app_key(email),
            password_hash=crypto.hash_password(password),
            theme=theme,
            encrypted_name=encrypt_with_app_key(name),
        )

    async def login(self, db: AsyncSession, email: str, password: str) -> LoginResponse:
        """
        Exchange email + password for the per-user key and profile.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password; the
                two cases are indistinguishable to the caller.
        """
        user = await user_service.find_user(
            db,
            encrypted_email=encrypt_with_app_key(email),
            password_hash=crypto.hash_password(password),
        )
        if user is None:
            logger.info("Login rejected")
            raise InvalidCredentialsError()

        logger.info("User %s logged in", user.id)
        return LoginResponse(
            key=user.key,
            name=decrypt_with_app_key(user.name),
            theme=user.theme,
        )

    async def ensure_email_available(self, db: AsyncSession, email: str) -> None:
        """Raise DuplicateEmailError if the email is already registered."""
        if await user_service.email_exists(db, encrypt_with_app_key(email)):
            raise DuplicateEmailError()

    async def authorize(
        self,
        db: AsyncSession,
        key: str,
        email: str,
        lock: bool = False,
    ) -> User:
        """
        Capability check for note operations.

        Args:
            key: Per-user key presented by the client.
            email: Plaintext email presented by the client.
            lock: Hold a row lock on the user until the transaction ends.
                  Set for writes so the check and the write are one unit.

        Returns:
            The matching User. Its `email` attribute is the encrypted email,
            which is the join key for notes.

        Raises:
            UserNotFoundError: No user holds this (key, email) pair.
        """
        user = await user_service.find_user_by_key_and_email(
            db, key, encrypt_with_app_key(email), lock=lock
        )
        if user is None:
            raise UserNotFoundError()
        return user

    async def authorize_with_password(
        self,
        db: AsyncSession,
        key: str,
        email: str,
        password: str,
        lock: bool = False,
    ) -> User:
        """Capability check for account mutations: key, email and password."""
        user = await user_service.find_user_by_credentials(
            db,
            key,
            encrypt_with_app_key(email),
            crypto.hash_password(password),
            lock=lock,
        )
        if user is None:
            raise UserNotFoundError()
        return user


auth_service = AuthService()
