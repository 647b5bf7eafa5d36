# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Data models for face-presence check-in sessions.

Everything here except CheckInRecord is transient: it lives for one
check-in session and is never persisted by the session itself.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np


class CheckInPhase(Enum):
    """Check-in session state machine states."""

    IDLE = "idle"  # Waiting for the user to start a check-in
    CAMERA_STARTING = "camera_starting"  # Acquiring the camera stream
    SCANNING = "scanning"  # Sampling frames and analysing them
    SUCCESS = "success"  # Check-in emitted, showing confirmation
    MANUAL_FALLBACK = "manual_fallback"  # One-tap confirmation offered

    @property
    def is_active(self) -> bool:
        """Whether the camera pipeline is running in this phase."""
        return self in (CheckInPhase.CAMERA_STARTING, CheckInPhase.SCANNING)


class IndicatorColor(Enum):
    """Color of the target-oval indicator."""

    NEUTRAL = "neutral"
    ADJUSTING = "adjusting"
    FAILURE = "failure"
    SUCCESS = "success"


@dataclass
class CaptureFrame:
    """A still frame captured from the live camera stream.

    The image is a BGR array (OpenCV layout). Frames are consumed
    read-only by the heuristic and the detector, then dropped.
    """

    image: np.ndarray
    width: int
    height: int
    sequence: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_image(cls, image: np.ndarray, sequence: int = 0) -> "CaptureFrame":
        """Wrap an image array, taking the dimensions from its shape."""
        height, width = image.shape[:2]
        return cls(image=image, width=width, height=height, sequence=sequence)


@dataclass
class DetectionVerdict:
    """Result of one analysis pass over a frame.

    The local lighting screen fills in only the lighting flags; the
    remote detector fills in everything.
    """

    face_detected: bool = False
    in_target_region: bool = False
    is_too_dark: bool = False
    is_too_bright: bool = False
    confidence: int = 0  # 0-100
    guidance_text: str = ""

    @property
    def lighting_ok(self) -> bool:
        """True if neither lighting flag is set."""
        return not (self.is_too_dark or self.is_too_bright)

    def is_success(self, min_confidence: int) -> bool:
        """Whether this verdict confirms a centered, confident face."""
        return (
            self.face_detected
            and self.in_target_region
            and self.confidence >= min_confidence
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the face-analysis wire format."""
        return {
            "face_detected": self.face_detected,
            "face_in_oval": self.in_target_region,
            "is_dark": self.is_too_dark,
            "is_bright": self.is_too_bright,
            "guidance": self.guidance_text,
            "confidence": self.confidence,
        }


@dataclass
class AttemptCounter:
    """Bounded failure counters for one attempt cycle.

    Lighting failures and detection failures are counted independently;
    either one reaching its maximum ends the automated path.
    """

    max_lighting_failures: int = 2
    max_detection_failures: int = 2
    lighting_failures: int = 0
    detection_failures: int = 0

    @property
    def lighting_exhausted(self) -> bool:
        return self.lighting_failures >= self.max_lighting_failures

    @property
    def detection_exhausted(self) -> bool:
        return self.detection_failures >= self.max_detection_failures

    @property
    def exhausted(self) -> bool:
        """Whether either budget has been used up."""
        return self.lighting_exhausted or self.detection_exhausted

    @property
    def detection_remaining(self) -> int:
        return max(0, self.max_detection_failures - self.detection_failures)

    def record_lighting_failure(self) -> bool:
        """Count a lighting failure.

        Returns:
            True if the lighting budget is now exhausted
        """
        self.lighting_failures += 1
        return self.lighting_exhausted

    def record_detection_failure(self) -> bool:
        """Count a no-face or service failure.

        Returns:
            True if the detection budget is now exhausted
        """
        self.detection_failures += 1
        return self.detection_exhausted

    def reset(self) -> None:
        """Zero both counters for a fresh attempt cycle."""
        self.lighting_failures = 0
        self.detection_failures = 0


@dataclass
class CheckInSessionState:
    """Snapshot of a check-in session as the UI should render it."""

    phase: CheckInPhase = CheckInPhase.IDLE
    guidance: str = ""
    indicator: IndicatorColor = IndicatorColor.NEUTRAL
    attempts_remaining: int = 0
    fallback_reason: Optional[str] = None
    changed_at: datetime = field(default_factory=datetime.now)

    def evolve(self, **changes: Any) -> "CheckInSessionState":
        """Return a copy with the given fields replaced."""
        changes.setdefault("changed_at", datetime.now())
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "phase": self.phase.value,
            "guidance": self.guidance,
            "indicator": self.indicator.value,
            "attempts_remaining": self.attempts_remaining,
            "fallback_reason": self.fallback_reason,
            "changed_at": self.changed_at.isoformat(),
        }


@dataclass
class BatteryStatus:
    """Device battery telemetry attached to a check-in."""

    level: int  # 0-100
    is_charging: bool


@dataclass
class CheckInRecord:
    """The durable fact that a user confirmed presence at a point in time."""

    user_id: str
    timestamp: datetime = field(default_factory=datetime.now)
    battery_level: Optional[int] = None
    is_charging: Optional[bool] = None
    id: Optional[int] = None

    def with_battery(self, battery: Optional[BatteryStatus]) -> "CheckInRecord":
        """Return a copy carrying battery telemetry, if there is any."""
        if battery is None:
            return self
        return replace(self, battery_level=battery.level, is_charging=battery.is_charging)

    def to_insert_dict(self) -> Dict[str, Any]:
        """Build the sink payload.

        Telemetry keys are left out entirely when not collected.
        """
        data: Dict[str, Any] = {
            "user_id": self.user_id,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.battery_level is not None:
            data["battery_level"] = self.battery_level
        if self.is_charging is not None:
            data["is_charging"] = self.is_charging
        return data
