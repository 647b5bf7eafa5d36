# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Common detector contract.

A detector turns a captured frame into a DetectionVerdict. Service
failures are raised as DetectionError so the check-in state machine can
count them against the detection budget.
"""

from enum import Enum
from typing import Optional

from safecheck.models.checkin import CaptureFrame, DetectionVerdict


class DetectionStrategy(Enum):
    """Which tier performs presence detection."""

    REMOTE = "remote"  # Face-analysis service over HTTP
    LOCAL = "local"  # Pixel heuristics only, no network


class DetectionErrorKind(Enum):
    """Classes of detector failure."""

    TRANSPORT = "transport"  # Connection refused, DNS, reset
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"  # HTTP 429
    QUOTA_EXHAUSTED = "quota_exhausted"  # HTTP 402
    SERVICE = "service"  # Any other non-success status
    MALFORMED = "malformed"  # Response failed schema validation


class DetectionError(Exception):
    """A detector could not produce a verdict."""

    def __init__(self, kind: DetectionErrorKind, message: str = "", status: Optional[int] = None):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message or kind.value
        self.status = status

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.kind.value} (HTTP {self.status}): {self.message}"
        return f"{self.kind.value}: {self.message}"


class FaceDetector:
    """Base class for presence detectors."""

    strategy: DetectionStrategy

    async def analyze(self, frame: CaptureFrame) -> DetectionVerdict:
        """Analyse one frame.

        Raises:
            DetectionError: If no verdict could be obtained
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release any resources held by the detector."""
