# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Camera acquisition and frame sampling."""

from safecheck.capture.camera_session import (
    CameraErrorKind,
    CameraOpenResult,
    CameraSession,
    get_camera,
)
from safecheck.capture.frame_sampler import FrameSampler

__all__ = ["CameraErrorKind", "CameraOpenResult", "CameraSession", "FrameSampler", "get_camera"]
