"""
Exception handlers for adapter errors.

Database failures reach the client as a sanitized 500; row level security
rejections become 403.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from adapters.db import DatabaseError
from core.metrics import increment_counter

logger = logging.getLogger(__name__)


async def database_exception_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    increment_counter("api.database_errors", labels={
        "operation": exc.operation or "unknown",
        "permission": str(exc.is_permission_error),
    })

    if exc.is_permission_error:
        logger.warning(f"Permission denied by database on {request.method} {request.url.path} ({exc.operation})")
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"error": "forbidden", "message": "You do not have permission to perform this action."},
        )

    logger.error(f"Database error on {request.method} {request.url.path} ({exc.operation}): {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "message": "Something went wrong. Please try again."},
    )
