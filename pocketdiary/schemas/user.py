"""
Pocket Diary Backend: Account Request/Response Schemas
========================================================

What:  API contracts for registration, login and profile mutations.
How:   Pydantic rejects missing, empty and oversized fields (over 128 chars
       by default) before a route handler runs, so no encryption or
       database work happens for malformed input.
"""

from typing import Optional

from pydantic import BaseModel, Field

from pocketdiary.schemas.common import MAX_FIELD, AccountCredentials, FormattedEmail


class RegisterRequest(BaseModel):
    """Body of POST /api/users/register."""
    email: FormattedEmail
    password: str = Field(min_length=1, max_length=MAX_FIELD)
    name: str = Field(min_length=1, max_length=MAX_FIELD)
    theme: int = Field(strict=True, ge=0, le=32767, description="UI theme preference (small integer)")


class LoginRequest(BaseModel):
    """Body of POST /api/users/login."""
    email: str = Field(min_length=1, max_length=MAX_FIELD)
    password: str = Field(min_length=1, max_length=MAX_FIELD)


class LoginResponse(BaseModel):
    """
    What the client keeps after login.

    `key` is the long-lived bearer credential for every later request;
    there is no separate session token.
    """
    key: str = Field(description="Per-user key (64 hex chars)")
    name: str = Field(description="Decrypted display name")
    theme: int = Field(description="UI theme preference")


class UpdateNameRequest(AccountCredentials):
    name: str = Field(min_length=1, max_length=MAX_FIELD)


class UpdatePasswordRequest(AccountCredentials):
    new_password: str = Field(alias="newPassword", min_length=1, max_length=MAX_FIELD)

    model_config = {"populate_by_name": True}


class UpdateThemeRequest(AccountCredentials):
    theme: int = Field(strict=True, ge=0, le=32767, description="UI theme preference (small integer)")


class UpdateUserRequest(AccountCredentials):
    """
    Partial profile update: any subset of name, newPassword and theme.

    At least one must be present; AccountService rejects an empty update.
    """
    name: Optional[str] = Field(default=None, min_length=1, max_length=MAX_FIELD)
    new_password: Optional[str] = Field(
        default=None, alias="newPassword", min_length=1, max_length=MAX_FIELD
    )
    theme: Optional[int] = Field(default=None, strict=True, ge=0, le=32767)

    model_config = {"populate_by_name": True}
