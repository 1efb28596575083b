"""FastAPI dependencies for bpelprd.

Shared services live on ``app.state`` and are handed to routes through
FastAPI's Depends() injection system.
"""

import logging

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)


async def get_extraction_service(request: Request):
    """Get ExtractionService from app state."""
    return request.app.state.extraction_service


async def enforce_body_limit(request: Request) -> None:
    """Reject requests whose body exceeds ``api.max_request_bytes``.

    The declared Content-Length is trusted when present; chunked bodies
    are measured after reading.
    """
    limit = request.app.state.max_request_bytes
    declared = request.headers.get("content-length", "")
    if declared.isdigit():
        length = int(declared)
    else:
        length = len(await request.body())
    if length > limit:
        logger.warning("Rejected %s request of %d bytes (limit %d)", request.url.path, length, limit)
        raise HTTPException(
            status_code=413,
            detail=f"Request body of {length} bytes exceeds limit of {limit} bytes",
        )
