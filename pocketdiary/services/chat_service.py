"""
Pocket Diary Backend: Chat Proxy Service
==========================================

What:  Forwards a user's message to an OpenAI-compatible chat-completion API
       (Groq by default) and returns the reply text.
How:   httpx POST with a Bearer token, wrapped in tenacity retries for
       transient failures and a circuit breaker for sustained outages.
Who:   Instantiated once at import; called by the chat route and /health.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transport errors,
       429 and 5xx responses
    2. Other 4xx responses fail at once (retrying a bad API key is pointless)
    3. Circuit breaker trips after CB_FAILURE_THRESHOLD failed calls and
       rejects further calls until CB_RECOVERY_TIMEOUT has passed

Nothing in this module touches user data or the database.
"""

import logging
import time
import uuid
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.wait import wait_base

from pocketdiary.config import settings
from pocketdiary.exceptions import ChatServiceError, CircuitBreakerOpenError
from pocketdiary.services.llm_base import ChatProvider

logger = logging.getLogger(__name__)

NO_RESPONSE = "No response"


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker around the upstream chat API.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Not shared across worker processes; each uvicorn worker trips its own.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Check if a request is allowed through.

        Raises:
            CircuitBreakerOpenError: Circuit is OPEN and the recovery timeout
                has not elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info("Circuit breaker transitioning to HALF_OPEN after %.1fs", elapsed)
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def is_open(self) -> bool:
        """True while calls would be rejected, without changing state."""
        if self.state != self.OPEN:
            return False
        return time.time() - (self.last_failure_time or 0) < self.recovery_timeout

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


def _is_transient(exc: BaseException) -> bool:
    """Transport failures, rate limiting and server errors are worth retrying."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


def extract_reply(payload: Dict[str, Any]) -> str:
    """Pull choices[0].message.content out of a completion payload."""
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return NO_RESPONSE
    return content or NO_RESPONSE


# ══════════════════════════════════════════════════════════════════════════
# Chat Service
# ══════════════════════════════════════════════════════════════════════════

class ChatService(ChatProvider):
    """
    OpenAI-compatible chat-completion client.

    Error Handling Chain:
        Call fails transiently → tenacity retries (RETRY_MAX_ATTEMPTS)
        → All retries fail → circuit breaker failure → ChatServiceError (503)
        → Threshold reached → CircuitBreakerOpenError (503) until recovery
        → Recovery timeout → one trial call (HALF_OPEN)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        wait: Optional[wait_base] = None,
    ):
        """
        Args:
            transport: Custom httpx transport (tests pass httpx.MockTransport).
            wait: Tenacity wait strategy between attempts; defaults to
                  exponential backoff with jitter from settings.
        """
        self.api_key = settings.groq_api_key if api_key is None else api_key
        self.api_url = api_url or settings.chat_api_url
        self.model = model or settings.chat_model
        self.timeout = timeout or settings.chat_timeout
        self.max_attempts = settings.retry_max_attempts
        self._transport = transport
        self._wait = wait or wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        )
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "ChatService initialized with model=%s, circuit_breaker(threshold=%d, recovery=%ds)",
            self.model,
            self.circuit_breaker.failure_threshold,
            self.circuit_breaker.recovery_timeout,
        )

    async def complete(self, message: str) -> str:
        """
        Forward `message` upstream and return the reply text.

        Raises:
            ChatServiceError: Not configured, rejected, or retries exhausted.
            CircuitBreakerOpenError: Circuit is open.
        """
        if not self.api_key:
            raise ChatServiceError(message="AI chat service is not configured")

        request_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        try:
            payload = await self._call_with_retry(message, request_id)
        except RetryError as e:
            self.circuit_breaker.record_failure()
            last = e.last_attempt.exception() if e.last_attempt else None
            logger.error("[%s] All chat retries exhausted: %s", request_id, type(last).__name__)
            raise ChatServiceError(
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"request_id": request_id, "attempts": self.max_attempts},
            )
        except httpx.HTTPStatusError as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Chat API rejected request with status %d",
                request_id,
                e.response.status_code,
            )
            raise ChatServiceError(
                context={"request_id": request_id, "status_code": e.response.status_code},
            )
        except ValueError as e:
            self.circuit_breaker.record_failure()
            logger.error("[%s] Chat API returned a non-JSON body", request_id)
            raise ChatServiceError(
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

        self.circuit_breaker.record_success()
        return extract_reply(payload)

    async def _call_with_retry(self, message: str, request_id: str) -> Dict[str, Any]:
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        async for attempt in retrying:
            with attempt:
                return await self._post(message, request_id)
        raise ChatServiceError(context={"request_id": request_id})

    async def _post(self, message: str, request_id: str) -> Dict[str, Any]:
        start_time = time.time()
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "messages": [{"role": "user", "content": message}],
                    "model": self.model,
                },
            )
        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "[%s] Chat API answered %d in %.0fms",
            request_id,
            response.status_code,
            duration_ms,
        )
        response.raise_for_status()
        return response.json()

    async def health_check(self) -> bool:
        # No upstream call: a probe would spend API quota.
        return bool(self.api_key) and not self.circuit_breaker.is_open()


# One instance so the circuit breaker state is shared across requests
chat_service = ChatService()
