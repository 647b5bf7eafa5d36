# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Face-detect HTTP service answering the check-in client's analysis calls."""

from safecheck.service.analyzer import FaceAnalyzer, guidance_for_bbox
from safecheck.service.server import create_app

__all__ = ["FaceAnalyzer", "create_app", "guidance_for_bbox"]
