"""
Pocket Diary Backend: User Route Handlers
===========================================

What:  Registration, login, email availability, profile updates and account
       deletion.
How:   Bodies are validated by the schemas; handlers call AuthService or
       AccountService inside the request's database session.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pocketdiary.database import get_db_session
from pocketdiary.schemas.common import AccountCredentials, EmailRequest, ErrorResponse, MessageResponse
from pocketdiary.schemas.user import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    UpdateNameRequest,
    UpdatePasswordRequest,
    UpdateThemeRequest,
    UpdateUserRequest,
)
from pocketdiary.services.account_service import account_service
from pocketdiary.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])

_AUTH_ERRORS = {
    400: {"description": "Missing or invalid fields", "model": ErrorResponse},
    401: {"description": "Credentials do not match a user", "model": ErrorResponse},
}


@router.post(
    "/register",
    response_model=MessageResponse,
    responses={
        400: {"description": "Missing or invalid fields", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Create an account",
)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    """The per-user key is generated here but only handed out by login."""
    await auth_service.register(db, body.email, body.password, body.name, body.theme)
    return MessageResponse()


@router.post(
    "/login",
    response_model=LoginResponse,
    responses=_AUTH_ERRORS,
    summary="Exchange email and password for the per-user key",
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> LoginResponse:
    return await auth_service.login(db, body.email, body.password)


@router.post(
    "/availability",
    response_model=MessageResponse,
    responses={409: {"description": "Email already registered", "model": ErrorResponse}},
    summary="Check whether an email can still be registered",
)
async def check_availability(
    body: EmailRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.ensure_email_available(db, body.email)
    return MessageResponse(message="Email is available")


@router.delete(
    "",
    response_model=MessageResponse,
    responses={400: _AUTH_ERRORS[400]},
    summary="Delete the account and all of its notes",
)
async def delete_user(
    body: AccountCredentials,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    """
    Answers {"message": "no user found"} (HTTP 200) when key, email and
    password do not match one account, so a repeated delete is harmless.
    """
    deleted = await account_service.delete_account(db, body.key, body.email, body.password)
    return MessageResponse() if deleted else MessageResponse(message="no user found")


@router.patch("/name", response_model=MessageResponse, responses=_AUTH_ERRORS, summary="Change display name")
async def update_name(
    body: UpdateNameRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await account_service.update_name(db, body.key, body.email, body.password, body.name)
    return MessageResponse()


@router.patch("/password", response_model=MessageResponse, responses=_AUTH_ERRORS, summary="Change password")
async def update_password(
    body: UpdatePasswordRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await account_service.update_password(db, body.key, body.email, body.password, body.new_password)
    return MessageResponse()


@router.patch("/theme", response_model=MessageResponse, responses=_AUTH_ERRORS, summary="Change UI theme")
async def update_theme(
    body: UpdateThemeRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await account_service.update_theme(db, body.key, body.email, body.password, body.theme)
    return MessageResponse()


@router.patch(
    "",
    response_model=MessageResponse,
    responses=_AUTH_ERRORS,
    summary="Update any of name, password and theme at once",
)
async def update_user(
    body: UpdateUserRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await account_service.update_profile(
        db,
        body.key,
        body.email,
        body.password,
        name=body.name,
        new_password=body.new_password,
        theme=body.theme,
    )
    return MessageResponse()
