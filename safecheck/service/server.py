# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""FastAPI application factory for the face-detect service."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from safecheck.config import Settings, get_settings
from safecheck.detection.lighting import LocalFrameHeuristic
from safecheck.service.analyzer import FaceAnalyzer
from safecheck.service.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Face-detect service starting...")

    analyzer: FaceAnalyzer = app.state.analyzer
    if not analyzer.is_loaded and not analyzer.load():
        logger.error("Failed to load face model, /face-detect will return 503")

    settings: Settings = app.state.settings
    logger.info(f"Face-detect service ready on {settings.server.host}:{settings.server.port}")

    yield

    logger.info("Face-detect service stopped")


def create_app(
    settings: Optional[Settings] = None,
    analyzer: Optional[FaceAnalyzer] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings (global settings if not provided)
        analyzer: FaceAnalyzer to serve (built from settings if not provided)

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()
    if analyzer is None:
        analyzer = FaceAnalyzer(
            heuristic=LocalFrameHeuristic.from_settings(settings.heuristic, settings.sampler)
        )

    app = FastAPI(
        title="SafeCheck Face-Detect Service",
        description=(
            "Face presence and framing analysis for SafeCheck check-ins. "
            "Detects whether a face is present and centred; does not identify anyone."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.analyzer = analyzer

    # Check-in clients call from the browser/app origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, tags=["Face Detect"])

    return app
