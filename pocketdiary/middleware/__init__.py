# Middleware package init
"""
Pocket Diary Backend: Middleware Package
==========================================

Middleware Chain (outermost first):
    Request → [Request ID] → [Logging] → [Rate Limit] → [CORS] → Route Handler

    - Request ID wraps everything, so even 429 responses carry X-Request-ID
      and the access log line has an ID to print.
    - Logging records the final status, rate-limited requests included.
    - Rate limiting rejects before any database or crypto work.
"""
