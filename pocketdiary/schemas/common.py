"""
Pocket Diary Backend: Shared Request/Response Schemas
=======================================================

What:  Credential payloads reused by several routes, the generic
       `{message}` response, the error body and the health response.

Credentials Travel in Bodies:
    key, email and password are JSON body fields on every route, never
    query parameters or path segments, so they cannot end up in access
    logs or proxy logs.
"""

import re
from typing import Annotated, Any, List, Optional, Union

from pydantic import AfterValidator, BaseModel, Field

from pocketdiary.config import settings

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MAX_FIELD = settings.max_field_length


def check_email_format(value: str) -> str:
    """Pydantic validator body: shallow `local@domain.tld` check."""
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email format")
    return value


FormattedEmail = Annotated[
    str,
    Field(min_length=1, max_length=MAX_FIELD, description="Account email"),
    AfterValidator(check_email_format),
]


class KeyCredentials(BaseModel):
    """The capability pair required by every note operation."""
    key: str = Field(min_length=1, max_length=MAX_FIELD, description="Per-user key from login")
    email: str = Field(min_length=1, max_length=MAX_FIELD, description="Account email")


class AccountCredentials(KeyCredentials):
    """Capability pair plus password, required by every account mutation."""
    password: str = Field(min_length=1, max_length=MAX_FIELD, description="Current password")


class EmailRequest(BaseModel):
    """Body of the email availability check."""
    email: FormattedEmail


class MessageResponse(BaseModel):
    """Plain acknowledgement, e.g. {"message": "OK"}."""
    message: str = Field(default="OK")


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "auth_error",
            "message": "user not found",
            "request_id": "1f3a9c2e"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[Union[dict, List[Any]]] = Field(default=None, description="Validation details")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    chat: str = Field(description="Chat provider: available, unconfigured, circuit_open")
    uptime_seconds: float = Field(description="Seconds since service started")
