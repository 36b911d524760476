"""Create users and notes tables

Revision ID: 001
Revises: None
Create Date: 2024-12-15 00:00:00.000000+00:00

What:  Initial schema: `users` (encrypted identity records) and `notes`
       (encrypted diary entries keyed by the owner's encrypted email).

Rollback: downgrade() drops both tables (destructive, all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "email",
            sa.Text(),
            nullable=False,
            comment="Email encrypted with the application key (hex)",
        ),
        sa.Column(
            "password_hash",
            sa.String(128),
            nullable=False,
            comment="bcrypt verifier of the SHA-256 password digest",
        ),
        sa.Column(
            "key",
            sa.String(64),
            nullable=False,
            comment="Per-user key (hex): note encryption key and bearer credential",
        ),
        sa.Column(
            "theme",
            sa.SmallInteger(),
            nullable=False,
            server_default=sa.text("0"),
            comment="UI theme preference",
        ),
        sa.Column(
            "name",
            sa.Text(),
            nullable=False,
            comment="Display name encrypted with the application key (hex)",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_key", "users", ["key"])

    op.create_table(
        "notes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "owner_id",
            sa.Text(),
            nullable=False,
            comment="Owner's encrypted email",
        ),
        sa.Column(
            "title",
            sa.Text(),
            nullable=False,
            comment="Title encrypted with the owner's key (hex)",
        ),
        sa.Column(
            "description",
            sa.Text(),
            nullable=False,
            comment="Body encrypted with the owner's key (hex)",
        ),
        sa.Column(
            "scheduled_date",
            sa.Date(),
            nullable=False,
            comment="Day the note is scheduled for (plaintext)",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_notes"),
        sa.ForeignKeyConstraint(
            ["owner_id"],
            ["users.email"],
            name="fk_notes_owner_email",
            ondelete="CASCADE",
            onupdate="CASCADE",
        ),
    )
    op.create_index("idx_notes_owner_date", "notes", ["owner_id", "scheduled_date"])


def downgrade() -> None:
    op.drop_index("idx_notes_owner_date", table_name="notes")
    op.drop_table("notes")
    op.drop_index("ix_users_key", table_name="users")
    op.drop_table("users")
