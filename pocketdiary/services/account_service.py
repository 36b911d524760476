"""
Pocket Diary Backend: Account Service
=======================================

What:  Profile mutations (name, password, theme, partial update) and
       account deletion.
How:   Each call presents key + email + password. UserService re-checks all
       three under a row lock inside the request transaction and only then
       applies the change.

Not-found policy:
    - Updates: a credential mismatch raises UserNotFoundError (401).
    - Deletion: a mismatch returns False and the route answers
      {"message": "no user found"}. Deleting twice is not an error.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pocketdiary.exceptions import UserNotFoundError, ValidationError
from pocketdiary.services import crypto
from pocketdiary.services.auth_service import encrypt_with_app_key
from pocketdiary.services.user_service import user_service

logger = logging.getLogger(__name__)


class AccountService:

    async def update_profile(
        self,
        db: AsyncSession,
        key: str,
        email: str,
        password: str,
        name: Optional[str] = None,
        new_password: Optional[str] = None,
        theme: Optional[int] = None,
    ) -> None:
        """
        Apply any subset of name / new_password / theme.

        Raises:
            ValidationError: Nothing to update.
            UserNotFoundError: key, email and password do not match one user.
        """
        fields: Dict[str, Any] = {}
        if name is not None:
            fields["name"] = encrypt_with_app_key(name)
        if new_password is not None:
            fields["password_hash"] = crypto.hash_password(new_password)
        if theme is not None:
            fields["theme"] = theme
        if not fields:
            raise ValidationError(message="No fields to update")

        updated = await user_service.update_user(
            db,
            key=key,
            encrypted_email=encrypt_with_app_key(email),
            password_hash=crypto.hash_password(password),
            fields=fields,
        )
        if not updated:
            raise UserNotFoundError()

    async def update_name(self, db: AsyncSession, key: str, email: str, password: str, name: str) -> None:
        await self.update_profile(db, key, email, password, name=name)

    async def update_password(
        self, db: AsyncSession, key: str, email: str, password: str, new_password: str
    ) -> None:
        await self.update_profile(db, key, email, password, new_password=new_password)

    async def update_theme(self, db: AsyncSession, key: str, email: str, password: str, theme: int) -> None:
        await self.update_profile(db, key, email, password, theme=theme)

    async def delete_account(self, db: AsyncSession, key: str, email: str, password: str) -> bool:
        """Delete the account and its notes; False if the credentials match nothing."""
        deleted = await user_service.delete_user(
            db,
            key=key,
            encrypted_email=encrypt_with_app_key(email),
            password_hash=crypto.hash_password(password),
        )
        if not deleted:
            logger.info("Account deletion matched no user")
        return deleted


account_service = AccountService()
