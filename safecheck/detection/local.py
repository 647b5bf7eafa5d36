# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Network-free presence detection.

Used when no face-analysis service is configured. It can only say
"looks like someone is there"; it never claims a face it is unsure
about, so doubtful frames count as failures and push the user toward
the manual check-in sooner.
"""

import logging

from safecheck.detection.base import DetectionStrategy, FaceDetector
from safecheck.detection.lighting import LocalFrameHeuristic
from safecheck.models.checkin import CaptureFrame, DetectionVerdict

logger = logging.getLogger(__name__)

GUIDANCE_PRESENT = "Perfect! Hold still"
GUIDANCE_ABSENT = "Show your face"


class LocalPresenceDetector(FaceDetector):
    """FaceDetector backed by LocalFrameHeuristic."""

    strategy = DetectionStrategy.LOCAL

    def __init__(self, heuristic: LocalFrameHeuristic):
        self.heuristic = heuristic

    async def analyze(self, frame: CaptureFrame) -> DetectionVerdict:
        lighting = self.heuristic.screen_lighting(frame)
        presence = self.heuristic.screen_presence(frame)

        logger.debug(
            f"Local presence frame {frame.sequence}: present={presence.looks_present} "
            f"content={presence.content_fraction:.2f} skin={presence.skin_fraction:.2f}"
        )

        if presence.looks_present:
            return DetectionVerdict(
                face_detected=True,
                in_target_region=True,
                confidence=100,
                guidance_text=GUIDANCE_PRESENT,
            )
        return DetectionVerdict(
            is_too_dark=lighting.is_too_dark,
            is_too_bright=lighting.is_too_bright,
            guidance_text=GUIDANCE_ABSENT,
        )
