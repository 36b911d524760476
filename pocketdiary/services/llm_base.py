"""
Pocket Diary Backend: Abstract Chat Provider Interface
========================================================

What:  Contract for chat-completion providers behind POST /api/chat.
How:   Concrete providers inherit from ChatProvider and implement complete()
       and health_check().
Who:   ChatService is the only implementation; the chat route and the health
       endpoint depend on this interface, not on the provider.
"""

from abc import ABC, abstractmethod


class ChatProvider(ABC):
    """
    Abstract interface for a single-turn chat completion.

    Contract:
        - complete() takes the user's message and returns the reply text
        - Implementations handle their own retry logic and error translation
        - Provider errors are wrapped in ChatServiceError
    """

    @abstractmethod
    async def complete(self, message: str) -> str:
        """
        Send one user message and return the assistant's reply.

        Returns:
            str: The reply text, or "No response" when the provider answered
                 without any content. Never returns None.

        Raises:
            ChatServiceError: The provider is not configured, rejected the
                request, or failed after all retries.
            CircuitBreakerOpenError: Too many recent failures.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """True if the provider is configured and its circuit is not open."""
        ...
