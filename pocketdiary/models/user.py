"""
Pocket Diary Backend: User SQLAlchemy Model
=============================================

What:  ORM model for the `users` table.
Who:   UserService (the identity record store) and the authorization check.

Column Rationale:
    - email: hex ciphertext under the application key. Unique, so a second
      registration with the same address fails at INSERT time.
    - password_hash: bcrypt verifier of the SHA-256 password digest.
    - key: the per-user key in plaintext hex. It is both the note
      encryption key and the bearer credential, so it must be readable by
      the server. Indexed because every note request filters on it.
    - name: hex ciphertext under the application key.
    - theme: small integer UI preference, stored as-is.

Query Patterns:
    - Login: WHERE email = :enc_email  (unique index)
    - Capability check: WHERE key = :key AND email = :enc_email
"""

from datetime import datetime, timezone
from typing import List

from sqlalchemy import DateTime, Integer, SmallInteger, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pocketdiary.database import Base


class User(Base):
    """One registered diary owner."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    email: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        unique=True,
        comment="Email encrypted with the application key (hex)",
    )

    password_hash: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="bcrypt verifier of the SHA-256 password digest",
    )

    key: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        comment="Per-user key (hex): note encryption key and bearer credential",
    )

    theme: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        default=0,
        server_default=text("0"),
        comment="UI theme preference",
    )

    name: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Display name encrypted with the application key (hex)",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    notes: Mapped[List["Note"]] = relationship(  # noqa: F821
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        # Never include email, name or key
        return f"<User(id={self.id}, theme={self.theme})>"
