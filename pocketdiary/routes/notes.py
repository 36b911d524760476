"""
Pocket Diary Backend: Notes Route Handlers
============================================

What:  Add, list by date, list today's and delete notes.
How:   Every body carries the (key, email) pair; NoteService checks it before
       anything else happens.

Listing uses POST so the key never appears in a query string.
"""

import logging

from fastapi import APIRouter, Depends, Path, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pocketdiary.database import get_db_session
from pocketdiary.schemas.common import ErrorResponse, KeyCredentials, MessageResponse
from pocketdiary.schemas.note import AddNoteRequest, NoteListResponse, NotesByDateRequest
from pocketdiary.services.note_service import note_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["Notes"])

_ERRORS = {
    400: {"description": "Missing or invalid fields", "model": ErrorResponse},
    401: {"description": "key and email do not match a user", "model": ErrorResponse},
}


@router.post("", response_model=MessageResponse, responses=_ERRORS, summary="Add a note")
async def add_note(
    body: AddNoteRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await note_service.add_note(
        db,
        key=body.key,
        email=body.email,
        title=body.title,
        description=body.description,
        scheduled_date=body.date,
    )
    return MessageResponse()


@router.post(
    "/search",
    response_model=NoteListResponse,
    responses=_ERRORS,
    summary="List notes scheduled on a given day",
)
async def get_notes(
    body: NotesByDateRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> NoteListResponse:
    result = await note_service.get_notes(db, body.key, body.email, body.date)
    # Decrypted diary content must not sit in shared caches
    response.headers["Cache-Control"] = "no-store"
    return result


@router.post(
    "/today",
    response_model=NoteListResponse,
    responses=_ERRORS,
    summary="List notes scheduled for today",
)
async def get_today_notes(
    body: KeyCredentials,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> NoteListResponse:
    result = await note_service.get_today_notes(db, body.key, body.email)
    response.headers["Cache-Control"] = "no-store"
    return result


@router.delete(
    "/{note_id}",
    response_model=MessageResponse,
    responses=_ERRORS,
    summary="Delete one of the caller's notes",
)
async def delete_note(
    body: KeyCredentials,
    note_id: int = Path(ge=1, description="Note identifier"),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await note_service.delete_note(db, body.key, body.email, note_id)
    return MessageResponse()
