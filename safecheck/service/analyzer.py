# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Face presence and framing analysis for the face-detect service.

Answers the same questions as a hosted vision model would for the
check-in client (is there a face, is it inside the oval, is the image
too dark or too bright) using an OpenCV Haar cascade and the local
lighting heuristic. Identity is never examined.
"""

import logging
import os
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from safecheck.capture.frame_sampler import resize_frame
from safecheck.detection.lighting import LocalFrameHeuristic
from safecheck.models.checkin import CaptureFrame, DetectionVerdict

logger = logging.getLogger(__name__)

# Guidance vocabulary understood by the check-in client
GUIDANCE_PERFECT = "Perfect! Hold still"
GUIDANCE_MOVE_CLOSER = "Move closer"
GUIDANCE_MOVE_BACK = "Move further back"
GUIDANCE_MOVE_LEFT = "Move left"
GUIDANCE_MOVE_RIGHT = "Move right"
GUIDANCE_MOVE_UP = "Move up"
GUIDANCE_MOVE_DOWN = "Move down"
GUIDANCE_SHOW_FACE = "Show your face"
GUIDANCE_TOO_DARK = "Too dark, find better lighting"
GUIDANCE_TOO_BRIGHT = "Too bright, reduce lighting"

DEFAULT_CASCADE = "haarcascade_frontalface_default.xml"


def guidance_for_bbox(
    bbox: Sequence[int],
    frame_width: int,
    frame_height: int,
    center_band: float = 0.6,
    min_width: float = 0.25,
    max_width: float = 0.8,
) -> Tuple[bool, str]:
    """Decide whether a face box sits in the oval and what to tell the user.

    The frame is the mirrored selfie view, so a face on the right of the
    image means the user should move left.

    Args:
        bbox: Face box as (x, y, w, h) in pixels
        frame_width: Frame width in pixels
        frame_height: Frame height in pixels
        center_band: Fraction of each axis, centred, the face centre must lie in
        min_width: Smallest acceptable face width relative to the frame
        max_width: Largest acceptable face width relative to the frame

    Returns:
        (in_oval, guidance)
    """
    x, y, w, h = bbox
    cx = (x + w / 2) / frame_width
    cy = (y + h / 2) / frame_height
    width_ratio = w / frame_width

    low = (1.0 - center_band) / 2
    high = 1.0 - low

    if width_ratio < min_width:
        return False, GUIDANCE_MOVE_CLOSER
    if width_ratio > max_width:
        return False, GUIDANCE_MOVE_BACK
    if cx > high:
        return False, GUIDANCE_MOVE_LEFT
    if cx < low:
        return False, GUIDANCE_MOVE_RIGHT
    if cy > high:
        return False, GUIDANCE_MOVE_UP
    if cy < low:
        return False, GUIDANCE_MOVE_DOWN
    return True, GUIDANCE_PERFECT


def confidence_from_neighbors(neighbors: int) -> int:
    """Map the cascade's merged-detection count to a 0-100 confidence."""
    return int(max(0, min(100, 50 + 5 * neighbors)))


class FaceAnalyzer:
    """Haar-cascade face analysis producing DetectionVerdicts.

    Usage:
        analyzer = FaceAnalyzer()
        analyzer.load()
        verdict = analyzer.analyze(frame)
    """

    def __init__(
        self,
        heuristic: Optional[LocalFrameHeuristic] = None,
        cascade_path: Optional[str] = None,
        min_neighbors: int = 4,
        center_band: float = 0.6,
        min_face_width: float = 0.25,
        max_face_width: float = 0.8,
    ):
        """Initialize analyzer.

        Args:
            heuristic: Lighting screen (defaults if not provided)
            cascade_path: Cascade XML file (OpenCV's frontal face model if None)
            min_neighbors: Cascade minNeighbors; higher means fewer false faces
            center_band: Centred fraction of the frame counted as the oval
            min_face_width: Smallest face width, relative to the frame
            max_face_width: Largest face width, relative to the frame
        """
        self.heuristic = heuristic or LocalFrameHeuristic()
        self.cascade_path = cascade_path or os.path.join(cv2.data.haarcascades, DEFAULT_CASCADE)
        self.min_neighbors = min_neighbors
        self.center_band = center_band
        self.min_face_width = min_face_width
        self.max_face_width = max_face_width
        self._cascade: Optional[cv2.CascadeClassifier] = None

    @property
    def is_loaded(self) -> bool:
        return self._cascade is not None

    def load(self) -> bool:
        """Load the cascade model.

        Returns:
            True if the model is ready
        """
        cascade = cv2.CascadeClassifier(self.cascade_path)
        if cascade.empty():
            logger.error(f"Failed to load face cascade from {self.cascade_path}")
            return False
        self._cascade = cascade
        logger.info(f"Face cascade loaded from {self.cascade_path}")
        return True

    def analyze(self, image: np.ndarray) -> DetectionVerdict:
        """Analyse a BGR image.

        Raises:
            RuntimeError: If load() has not succeeded
        """
        if self._cascade is None:
            raise RuntimeError("Face cascade not loaded")

        frame = resize_frame(image)
        lighting = self.heuristic.screen_lighting(CaptureFrame.from_image(frame))
        if lighting.is_too_dark or lighting.is_too_bright:
            return DetectionVerdict(
                is_too_dark=lighting.is_too_dark,
                is_too_bright=lighting.is_too_bright,
                guidance_text=GUIDANCE_TOO_DARK if lighting.is_too_dark else GUIDANCE_TOO_BRIGHT,
            )

        height, width = frame.shape[:2]
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if frame.ndim == 3 else frame
        gray = cv2.equalizeHist(gray)
        min_side = max(24, int(min(height, width) * 0.15))

        faces, neighbors = self._cascade.detectMultiScale2(
            gray,
            scaleFactor=1.1,
            minNeighbors=self.min_neighbors,
            minSize=(min_side, min_side),
            flags=cv2.CASCADE_SCALE_IMAGE,
        )

        if len(faces) == 0:
            return DetectionVerdict(guidance_text=GUIDANCE_SHOW_FACE)

        # Largest face
        index = max(range(len(faces)), key=lambda i: faces[i][2] * faces[i][3])
        bbox = [int(v) for v in faces[index]]
        in_oval, guidance = guidance_for_bbox(
            bbox,
            width,
            height,
            center_band=self.center_band,
            min_width=self.min_face_width,
            max_width=self.max_face_width,
        )

        confidence = confidence_from_neighbors(int(neighbors[index]))
        logger.debug(f"Face at {bbox} in_oval={in_oval} confidence={confidence}")

        return DetectionVerdict(
            face_detected=True,
            in_target_region=in_oval,
            confidence=confidence,
            guidance_text=guidance,
        )
