"""FastAPI application factory for bpelprd.

Creates and configures the FastAPI app with CORS and the extraction
routes registered.
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..core.config import load_unified_config
from ..core.extraction.service import ExtractionService

logger = logging.getLogger(__name__)


def create_app(
    service: Optional[ExtractionService] = None,
    max_request_bytes: Optional[int] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: ExtractionService instance (built from config when omitted)
        max_request_bytes: Body size limit (``api.max_request_bytes`` when omitted)

    Returns:
        Configured FastAPI application
    """
    api_config = load_unified_config()["api"]

    app = FastAPI(
        title="bpelprd API",
        description="Deterministic PRD extraction from BPEL processes",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(api_config.get("cors_origins", [])),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store shared dependencies on app state
    app.state.extraction_service = service or ExtractionService()
    app.state.max_request_bytes = (
        max_request_bytes if max_request_bytes is not None else int(api_config["max_request_bytes"])
    )

    from .routes.extraction import router as extraction_router

    app.include_router(extraction_router, prefix="/api")

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok", "service": "bpelprd", "version": __version__}

    logger.info("FastAPI app created with all routes registered")
    return app
