# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Face-detect and health endpoints."""

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from safecheck.capture.frame_sampler import data_uri_to_frame

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.get("/health")
async def health_check(request: Request):
    """Basic health check endpoint."""
    analyzer = request.app.state.analyzer
    return {
        "status": "ok" if analyzer.is_loaded else "degraded",
        "service": "face-detect",
        "model_loaded": analyzer.is_loaded,
    }


@router.post("/face-detect")
async def face_detect(request: Request):
    """Analyse one check-in frame.

    Body: {"image": "<data URI or base64 JPEG>"}

    Returns the detection verdict: face_detected, face_in_oval, is_dark,
    is_bright, guidance and confidence.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    image = payload.get("image") if isinstance(payload, dict) else None
    if not image or not isinstance(image, str):
        return _error(400, "No image provided")

    frame = data_uri_to_frame(image)
    if frame is None:
        return _error(422, "Could not decode image")

    analyzer = request.app.state.analyzer
    if not analyzer.is_loaded:
        return _error(503, "Face model not loaded")

    try:
        verdict = await asyncio.to_thread(analyzer.analyze, frame)
    except Exception as e:
        logger.error(f"Face analysis failed: {e}")
        return _error(500, "Face analysis failed")

    return verdict.to_dict()
