"""
Pocket Diary Backend: Application Package
==========================================

What:  Marks the `pocketdiary` directory as a Python package.
Who:   Imported by uvicorn (`pocketdiary.main:app`), Alembic and pytest.

Architecture Note:
    The backend keeps the same layered shape throughout:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │  Services (auth, accounts, notes)   │  ← Key checks, encryption, rules
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Encryption happens in the services layer. Routes never see ciphertext
    and models never see plaintext secrets.
"""

__version__ = "1.0.0"
