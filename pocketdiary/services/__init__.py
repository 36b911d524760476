# Services package init
"""
Pocket Diary Backend: Services Layer
======================================

What:  Business logic between routes (HTTP) and the database.
How:   Route handlers pass plaintext request values in; services encrypt,
       authorize, persist and decrypt, and return response schemas.

Service Inventory:
    - crypto: AES-256-CBC encrypt/decrypt, key generation, password digests
    - UserService: identity record store (users table)
    - AuthService: registration, login, authorization-by-key
    - AccountService: profile updates and account deletion
    - NoteService: encrypted note add/list/delete
    - ChatProvider (abstract) / ChatService: chat-completion proxy
    - keepalive: periodic database and URL ping
"""
