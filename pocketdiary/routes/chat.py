"""
Pocket Diary Backend: Chat Route Handler
==========================================

What:  POST /api/chat relays one message to the chat-completion provider.
"""

from fastapi import APIRouter

from pocketdiary.schemas.chat import ChatRequest, ChatResponse
from pocketdiary.schemas.common import ErrorResponse
from pocketdiary.services.chat_service import chat_service

router = APIRouter(prefix="/api", tags=["Chat"])


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={
        400: {"description": "Missing message", "model": ErrorResponse},
        503: {"description": "Chat provider unavailable", "model": ErrorResponse},
    },
    summary="Ask the assistant",
)
async def chat(body: ChatRequest) -> ChatResponse:
    reply = await chat_service.complete(body.message)
    return ChatResponse(response=reply)
