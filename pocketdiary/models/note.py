"""
Pocket Diary Backend: Note SQLAlchemy Model
=============================================

What:  ORM model for the `notes` table.
Who:   NoteService for add/list/delete; Alembic for schema management.

Table Design:
    - owner_id references users.email (the encrypted email), not users.id.
      Notes are joined to their owner by value, the same value the client's
      email encrypts to, so a note query never needs the users table once
      the capability check has passed.
    - title/description are hex ciphertext under the owner's per-user key.
      The application key alone cannot read them.
    - scheduled_date is plaintext: it drives the "today" and "on date" queries.

Index on (owner_id, scheduled_date):
    Every list query is WHERE owner_id = :owner AND scheduled_date = :day.
"""

from datetime import date, datetime, timezone

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pocketdiary.database import Base


class Note(Base):
    """
    A diary entry scheduled for one day.

    Lifecycle:
        1. Created by NoteService.add_note (date must be today or later)
        2. Read by date or by "today"
        3. Deleted explicitly, or by cascade when the owner deletes the account
    """

    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    owner_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("users.email", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        comment="Owner's encrypted email",
    )

    title: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Title encrypted with the owner's key (hex)",
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Body encrypted with the owner's key (hex)",
    )

    scheduled_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="Day the note is scheduled for (plaintext)",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    owner: Mapped["User"] = relationship(back_populates="notes")  # noqa: F821

    __table_args__ = (
        Index("idx_notes_owner_date", "owner_id", "scheduled_date"),
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, scheduled_date='{self.scheduled_date}')>"
