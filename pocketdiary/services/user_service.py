"""
Pocket Diary Backend: User Service (Identity Record Store)
===========================================================

What:  Persistence operations on the `users` table.
How:   Every method takes already-encrypted emails/names and a
       hash_password() digest; nothing in this module sees a plaintext
       email, name or password.
Who:   AuthService (register/login/capability check) and AccountService.

Password Verification:
    Stored verifiers are salted, so a lookup cannot be `WHERE password = :h`.
    Records are fetched by encrypted email (and key where given) and the
    digest is checked with crypto.verify_password_async() off the event loop.

Locking:
    Methods that precede a write select the user row FOR UPDATE. The lock
    lives until the request's session commits, so a concurrent account
    deletion cannot slip between the check and the write. SQLite ignores
    the clause; its writes are serialized anyway.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pocketdiary.exceptions import DuplicateEmailError, StorageError
from pocketdiary.models.note import Note
from pocketdiary.models.user import User
from pocketdiary.services import crypto

logger = logging.getLogger(__name__)

# Columns a partial update may touch
UPDATABLE_FIELDS = {"name", "password_hash", "theme"}


class UserService:
    """
    Identity record store.

    Error Handling Strategy:
        IntegrityError on insert → DuplicateEmailError (the only unique
        constraint is the encrypted email). Any other SQLAlchemyError →
        StorageError with the exception type in its context.
    """

    async def create_user(
        self,
        db: AsyncSession,
        encrypted_email: str,
        password_hash: str,
        theme: int,
        encrypted_name: str,
    ) -> str:
        """
        Insert a user and return their freshly generated per-user key.

        Args:
            encrypted_email: encrypt(app_key, email)
            password_hash: hash_password(password); sealed with bcrypt here
            theme: UI preference
            encrypted_name: encrypt(app_key, name)

        Raises:
            DuplicateEmailError: The encrypted email is already registered.
            StorageError: Any other database failure.
        """
        key = crypto.generate_key()
        user = User(
            email=encrypted_email,
            password_hash=await crypto.seal_password_async(password_hash),
            key=key,
            theme=theme,
            name=encrypted_name,
        )
        try:
            db.add(user)
            await db.flush()
        except IntegrityError:
            raise DuplicateEmailError()
        except SQLAlchemyError as e:
            logger.error("Database error creating user: %s", type(e).__name__)
            raise StorageError(context={"operation": "create_user", "error_type": type(e).__name__})

        logger.info("User %s registered", user.id)
        return key

    async def find_user(
        self,
        db: AsyncSession,
        encrypted_email: str,
        password_hash: str,
    ) -> Optional[User]:
        """
        Login lookup: the user whose email and password both match, or None.

        An unknown email still costs one bcrypt check against a dummy
        verifier, so response time does not reveal which half was wrong.
        """
        user = await self._scalar(
            db, select(User).where(User.email == encrypted_email), "find_user"
        )
        if user is None:
            await crypto.verify_password_async(password_hash, crypto.DUMMY_VERIFIER)
            return None
        if not await crypto.verify_password_async(password_hash, user.password_hash):
            return None
        return user

    async def find_user_by_key_and_email(
        self,
        db: AsyncSession,
        key: str,
        encrypted_email: str,
        lock: bool = False,
    ) -> Optional[User]:
        """
        Capability lookup: the user holding this (key, email) pair, or None.

        Args:
            lock: Take a row lock for the rest of the transaction. Set it
                  when a write follows.
        """
        query = select(User).where(User.key == key, User.email == encrypted_email)
        if lock:
            query = query.with_for_update()
        return await self._scalar(db, query, "find_user_by_key_and_email")

    async def find_user_by_credentials(
        self,
        db: AsyncSession,
        key: str,
        encrypted_email: str,
        password_hash: str,
        lock: bool = False,
    ) -> Optional[User]:
        """The user matching key, email and password together, or None."""
        user = await self.find_user_by_key_and_email(db, key, encrypted_email, lock=lock)
        if user is None:
            await crypto.verify_password_async(password_hash, crypto.DUMMY_VERIFIER)
            return None
        if not await crypto.verify_password_async(password_hash, user.password_hash):
            return None
        return user

    async def update_user(
        self,
        db: AsyncSession,
        key: str,
        encrypted_email: str,
        password_hash: str,
        fields: Dict[str, Any],
    ) -> bool:
        """
        Partial update of the matching user; only supplied fields change.

        `fields` holds column values ready to store (name already encrypted,
        password_hash as a new hash_password() digest which is sealed here).

        Returns:
            True if a user matched and was updated, False otherwise.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        user = await self.find_user_by_credentials(
            db, key, encrypted_email, password_hash, lock=True
        )
        if user is None:
            return False

        for column, value in fields.items():
            if column == "password_hash":
                value = await crypto.seal_password_async(value)
            setattr(user, column, value)

        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating user %s: %s", user.id, type(e).__name__)
            raise StorageError(context={"operation": "update_user", "error_type": type(e).__name__})

        logger.info("User %s updated fields: %s", user.id, ", ".join(sorted(fields)))
        return True

    async def delete_user(
        self,
        db: AsyncSession,
        key: str,
        encrypted_email: str,
        password_hash: str,
    ) -> bool:
        """
        Delete the user matching all three credentials, and their notes.

        Returns:
            True if deleted; False if nothing matched (not an error).
        """
        user = await self.find_user_by_credentials(
            db, key, encrypted_email, password_hash, lock=True
        )
        if user is None:
            return False

        user_id = user.id
        try:
            # Notes first: the FK cascade does the same on PostgreSQL, but
            # this keeps the delete complete on backends without it.
            await db.execute(delete(Note).where(Note.owner_id == user.email))
            await db.execute(delete(User).where(User.id == user_id))
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting user %s: %s", user_id, type(e).__name__)
            raise StorageError(context={"operation": "delete_user", "error_type": type(e).__name__})

        logger.info("User %s deleted", user_id)
        return True

    async def email_exists(self, db: AsyncSession, encrypted_email: str) -> bool:
        """True if the encrypted email is already registered."""
        found = await self._scalar(
            db, select(User.id).where(User.email == encrypted_email).limit(1), "email_exists"
        )
        return found is not None

    async def _scalar(self, db: AsyncSession, query, operation: str):
        try:
            result = await db.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error in %s: %s", operation, type(e).__name__)
            raise StorageError(context={"operation": operation, "error_type": type(e).__name__})


# Stateless; shared by all requests
user_service = UserService()
