"""
Pocket Diary Backend: Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions, one per failure class.
How:   Each exception carries a client-safe `message` and a `context` dict
       that is logged but never returned. Global handlers registered in
       main.py turn them into JSON responses with the right status code.
Who:   Raised by services and middleware; caught by the global handlers.

Exception Hierarchy:
    PocketDiaryError (base)
    ├── ValidationError              → 400 Bad Request
    ├── AuthError                    → 401 Unauthorized
    │   ├── InvalidCredentialsError  (login mismatch)
    │   └── UserNotFoundError        (key/email pair not found)
    ├── CryptoError                  → 500 (generic message only)
    ├── StorageError                 → 500 (generic message only)
    │   └── DuplicateEmailError      → 409 Conflict
    ├── ChatServiceError             → 503 Service Unavailable
    ├── CircuitBreakerOpenError      → 503 Service Unavailable
    └── RateLimitExceededError       → 429 Too Many Requests

Auth failures are deliberately coarse: a wrong password and an unknown email
produce the same InvalidCredentialsError, and a wrong key and a wrong email
produce the same UserNotFoundError.
"""

from typing import Any, Dict, Optional


class PocketDiaryError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(PocketDiaryError):
    """
    Raised when client input fails a business rule.

    Examples: note date in the past, no fields supplied to a partial update,
    malformed email. Always raised before any encryption or storage work.
    """

    def __init__(
        self,
        message: str = "Invalid inputs",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthError(PocketDiaryError):
    """Credential or key/email mismatch."""

    def __init__(
        self,
        message: str = "Invalid credentials",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidCredentialsError(AuthError):
    """Login failed: unknown email or wrong password (indistinguishable)."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Invalid credentials", context=context)


class UserNotFoundError(AuthError):
    """
    The presented (key, email[, password]) tuple matches no user.

    Raised by the authorization check before any mutation runs.
    """

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="user not found", context=context)


class CryptoError(PocketDiaryError):
    """
    Malformed key, malformed ciphertext, or decryption with the wrong key.

    The message is generic on purpose; the underlying cipher error is kept
    in `context` for the server log.
    """

    def __init__(
        self,
        message: str = "Encryption operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StorageError(PocketDiaryError):
    """
    A database operation failed (connectivity, constraint, deadlock).

    The client only ever sees the generic message. SQL text and constraint
    names stay in the server log.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DuplicateEmailError(StorageError):
    """The unique constraint on the encrypted email rejected an insert."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Email already registered.", context=context)


class ChatServiceError(PocketDiaryError):
    """
    The upstream chat-completion API failed after all retries, or is not
    configured.
    """

    def __init__(
        self,
        message: str = "AI chat service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(PocketDiaryError):
    """
    Raised while the chat circuit breaker is OPEN.

    CLOSED → (N failures) → OPEN → (recovery timeout) → HALF_OPEN
    → one trial call → CLOSED on success, OPEN again on failure.
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            "AI chat service is temporarily unavailable due to repeated failures. "
            f"Please retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class RateLimitExceededError(PocketDiaryError):
    """A client exceeded its per-IP request budget."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many requests. Please wait {retry_after} seconds before retrying."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
