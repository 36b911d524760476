# Models package init
"""
Pocket Diary Backend: ORM Models
==================================

    - user.py:  User  (table `users`)
    - note.py:  Note  (table `notes`, owner_id → users.email)

Import both here so `Base.metadata` knows every table as soon as the
package is imported (Alembic autogenerate and test schema creation rely on it).
"""

from pocketdiary.models.user import User
from pocketdiary.models.note import Note

__all__ = ["User", "Note"]
