#!/usr/bin/env python3
"""
api/middleware/limits.py — FastAPI glue for auth attempt limits.

Turns RateLimitExceeded into 429 responses with Retry-After headers and
derives the identifier attempts are counted against.

Usage:
    from api.middleware.limits import rate_limit_exception_handler
    from core.limits import RateLimitExceeded

    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
"""

import hashlib
import time
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

from core.limits import RateLimitExceeded, create_429_response
from core.metrics import increment_counter


def get_client_identifier(request: Request, email: Optional[str] = None) -> str:
    """
    Identifier auth attempts are counted against.

    Tries, in order:
    1. The email the attempt is for (hashed, never stored in clear)
    2. Client IP address
    """
    if email and email.strip():
        digest = hashlib.sha256(email.strip().lower().encode()).hexdigest()[:16]
        return f"email:{digest}"

    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"


def create_rate_limit_response(retry_after: int, message: str) -> JSONResponse:
    """
    Create a 429 rate limit response.

    Args:
        retry_after: Seconds to wait before retrying
        message: Error message
    """
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "error": "too_many_requests",
            "message": message,
            "retry_after": retry_after,
            "status": 429
        },
        headers={
            "Retry-After": str(retry_after),
            "X-RateLimit-Reset": str(int(time.time()) + retry_after),
        }
    )


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Exception handler registered on the app for RateLimitExceeded."""
    increment_counter("limiter.requests.rejected", labels={
        "path": request.url.path,
        "action": exc.action or "unknown",
    })
    body = create_429_response(exc)
    return create_rate_limit_response(body["retry_after"], body["message"])
