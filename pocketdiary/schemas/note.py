"""
Pocket Diary Backend: Note Request/Response Schemas
=====================================================

What:  API contracts for adding, listing and deleting notes.

Field naming:
    The JSON contract uses `scheduledDate`; Python code uses
    `scheduled_date` and the alias is applied on serialization.
"""

import datetime as dt
from typing import List

from pydantic import BaseModel, Field

from pocketdiary.config import settings
from pocketdiary.schemas.common import MAX_FIELD, KeyCredentials


class AddNoteRequest(KeyCredentials):
    """
    Body of POST /api/notes.

    `date` must be today or later and no more than NOTE_MAX_YEARS_AHEAD
    calendar years ahead; NoteService enforces that before touching the
    database.
    """
    title: str = Field(min_length=1, max_length=MAX_FIELD)
    description: str = Field(min_length=1, max_length=settings.max_description_length)
    date: dt.date = Field(description="Scheduled day (YYYY-MM-DD)")


class NotesByDateRequest(KeyCredentials):
    """Body of POST /api/notes/search."""
    date: dt.date = Field(description="Day to list (YYYY-MM-DD)")


class NoteItem(BaseModel):
    """One decrypted note."""
    id: int = Field(description="Note identifier, used for deletion")
    title: str
    description: str
    scheduled_date: dt.date = Field(serialization_alias="scheduledDate")


class NoteListResponse(BaseModel):
    """{"notes": [...]}; an empty list when the day has nothing scheduled."""
    notes: List[NoteItem] = Field(default_factory=list)
