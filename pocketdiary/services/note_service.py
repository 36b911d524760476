"""
Pocket Diary Backend: Note Service
====================================

What:  Add, list (by date or for today) and delete a user's notes.
How:   Every operation runs the capability check first, then uses the
       owner's encrypted email as the join key and the owner's per-user
       key to encrypt or decrypt note content.
Who:   Called by the note route handlers.

Operation Order (add_note):
    ┌──────────────┐    ┌──────────────┐    ┌────────────┐    ┌──────────┐
    │ Date rules   │───▶│ (key, email) │───▶│ Encrypt    │───▶│ INSERT   │
    │ (no DB/crypto)│   │ FOR UPDATE   │    │ title/desc │    │          │
    └──────────────┘    └──────────────┘    └────────────┘    └──────────┘

    A bad date is rejected whatever the credentials are. A failed capability
    check raises UserNotFoundError before any write. The row lock and the
    insert share the request transaction.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pocketdiary.config import settings
from pocketdiary.exceptions import StorageError, ValidationError
from pocketdiary.models.note import Note
from pocketdiary.schemas.note import NoteItem, NoteListResponse
from pocketdiary.services import crypto
from pocketdiary.services.auth_service import auth_service

logger = logging.getLogger(__name__)


def validate_schedule_date(scheduled: date, today: Optional[date] = None) -> None:
    """
    A note may be scheduled from today up to NOTE_MAX_YEARS_AHEAD calendar
    years ahead (by year number, so any day of that final year is allowed).

    Raises:
        ValidationError: The date is in the past or too far ahead.
    """
    today = today or date.today()
    if scheduled < today or scheduled.year > today.year + settings.note_max_years_ahead:
        raise ValidationError(
            message="Date must be from today and within a reasonable future range.",
            field="date",
        )


class NoteService:
    """
    Business logic for note operations.

    Error Handling Strategy:
        UserNotFoundError propagates from the capability check. Database
        failures are wrapped in StorageError so SQL never reaches the client.
        CryptoError from decryption propagates as-is (generic 500).
    """

    async def add_note(
        self,
        db: AsyncSession,
        key: str,
        email: str,
        title: str,
        description: str,
        scheduled_date: date,
    ) -> None:
        """
        Store a note encrypted under the caller's per-user key.

        Raises:
            ValidationError: Date outside the allowed window.
            UserNotFoundError: (key, email) matches no user.
            StorageError: Insert failed.
        """
        validate_schedule_date(scheduled_date)

        owner = await auth_service.authorize(db, key, email, lock=True)

        note = Note(
            owner_id=owner.email,
            title=crypto.encrypt(key, title),
            description=crypto.encrypt(key, description),
            scheduled_date=scheduled_date,
        )
        try:
            db.add(note)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error adding note for user %s: %s", owner.id, type(e).__name__)
            raise StorageError(
                message="Could not save the note. Please try again.",
                context={"error_type": type(e).__name__},
            )
        logger.info("Note %s added for user %s on %s", note.id, owner.id, scheduled_date)

    async def get_notes(
        self,
        db: AsyncSession,
        key: str,
        email: str,
        scheduled_date: date,
    ) -> NoteListResponse:
        """All of the caller's notes scheduled on `scheduled_date`, decrypted."""
        owner = await auth_service.authorize(db, key, email)
        try:
            result = await db.execute(
                select(Note)
                .where(Note.owner_id == owner.email, Note.scheduled_date == scheduled_date)
                .order_by(Note.id)
            )
            notes: List[Note] = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing notes for user %s: %s", owner.id, type(e).__name__)
            raise StorageError(
                message="Could not retrieve notes. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return NoteListResponse(
            notes=[
                NoteItem(
                    id=note.id,
                    title=crypto.decrypt(key, note.title),
                    description=crypto.decrypt(key, note.description),
                    scheduled_date=note.scheduled_date,
                )
                for note in notes
            ]
        )

    async def get_today_notes(self, db: AsyncSession, key: str, email: str) -> NoteListResponse:
        """Notes scheduled for the server's current date."""
        return await self.get_notes(db, key, email, date.today())

    async def delete_note(self, db: AsyncSession, key: str, email: str, note_id: int) -> None:
        """
        Delete one of the caller's notes.

        The DELETE is conditional on both the id and the owner, so a valid
        key cannot remove another user's note. Deleting an id that does not
        exist (or is not the caller's) is not an error.
        """
        owner = await auth_service.authorize(db, key, email, lock=True)
        try:
            result = await db.execute(
                delete(Note).where(Note.id == note_id, Note.owner_id == owner.email)
            )
        except SQLAlchemyError as e:
            logger.error("Database error deleting note %s: %s", note_id, type(e).__name__)
            raise StorageError(
                message="Could not delete the note. Please try again.",
                context={"note_id": note_id, "error_type": type(e).__name__},
            )
        if result.rowcount == 0:
            logger.info("Note %s not deleted for user %s: no match", note_id, owner.id)


note_service = NoteService()
