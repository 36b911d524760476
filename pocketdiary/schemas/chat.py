"""
Pocket Diary Backend: Chat Proxy Schemas
==========================================
"""

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Body of POST /api/chat."""
    message: str = Field(min_length=1, max_length=4000, description="User message")


class ChatResponse(BaseModel):
    """Assistant reply text ("No response" when the provider returned none)."""
    response: str
