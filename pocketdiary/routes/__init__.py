# Routes package init
"""
Pocket Diary Backend: API Routes Package
==========================================

Route Inventory:
    - users.py:   POST   /api/users/register | /login | /availability
                  PATCH  /api/users/name | /password | /theme, PATCH /api/users
                  DELETE /api/users
    - notes.py:   POST   /api/notes | /api/notes/search | /api/notes/today
                  DELETE /api/notes/{note_id}
    - chat.py:    POST   /api/chat
    - health.py:  GET    /health

Routes are thin: parse the body, call a service, wrap the result.
"""
