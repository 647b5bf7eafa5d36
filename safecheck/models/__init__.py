# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Data models for check-in sessions."""

from safecheck.models.checkin import (
    AttemptCounter,
    BatteryStatus,
    CaptureFrame,
    CheckInPhase,
    CheckInRecord,
    CheckInSessionState,
    DetectionVerdict,
    IndicatorColor,
)

__all__ = [
    "AttemptCounter",
    "BatteryStatus",
    "CaptureFrame",
    "CheckInPhase",
    "CheckInRecord",
    "CheckInSessionState",
    "DetectionVerdict",
    "IndicatorColor",
]
