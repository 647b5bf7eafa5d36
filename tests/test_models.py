# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Tests for the check-in data model."""

from datetime import datetime

from safecheck.models.checkin import (
    AttemptCounter,
    BatteryStatus,
    CheckInPhase,
    CheckInRecord,
    CheckInSessionState,
    DetectionVerdict,
    IndicatorColor,
)


def test_attempt_counter_budgets_are_independent():
    counter = AttemptCounter(max_lighting_failures=2, max_detection_failures=3)

    assert counter.record_lighting_failure() is False
    assert counter.record_lighting_failure() is True
    assert counter.lighting_exhausted
    assert not counter.detection_exhausted
    assert counter.detection_remaining == 3

    counter.reset()
    assert counter.lighting_failures == 0
    assert counter.detection_failures == 0
    assert not counter.exhausted


def test_detection_remaining_never_negative():
    counter = AttemptCounter(max_detection_failures=1)
    counter.record_detection_failure()
    counter.record_detection_failure()

    assert counter.detection_remaining == 0


def test_verdict_success_rule():
    assert DetectionVerdict(face_detected=True, in_target_region=True, confidence=60).is_success(60)
    assert not DetectionVerdict(face_detected=True, in_target_region=True, confidence=59).is_success(60)
    assert not DetectionVerdict(face_detected=True, in_target_region=False, confidence=99).is_success(60)
    assert not DetectionVerdict(face_detected=False, in_target_region=True, confidence=99).is_success(60)


def test_verdict_wire_format():
    verdict = DetectionVerdict(
        face_detected=True,
        in_target_region=False,
        is_too_dark=False,
        is_too_bright=True,
        confidence=40,
        guidance_text="Move closer",
    )

    assert verdict.to_dict() == {
        "face_detected": True,
        "face_in_oval": False,
        "is_dark": False,
        "is_bright": True,
        "guidance": "Move closer",
        "confidence": 40,
    }
    assert not verdict.lighting_ok


def test_active_phases():
    assert CheckInPhase.CAMERA_STARTING.is_active
    assert CheckInPhase.SCANNING.is_active
    assert not CheckInPhase.IDLE.is_active
    assert not CheckInPhase.MANUAL_FALLBACK.is_active
    assert not CheckInPhase.SUCCESS.is_active


def test_session_state_evolve_keeps_original():
    state = CheckInSessionState()
    changed = state.evolve(phase=CheckInPhase.SCANNING, indicator=IndicatorColor.ADJUSTING)

    assert state.phase == CheckInPhase.IDLE
    assert changed.phase == CheckInPhase.SCANNING
    assert changed.to_dict()["indicator"] == "adjusting"


def test_record_without_telemetry_omits_fields():
    record = CheckInRecord(user_id="elder-1", timestamp=datetime(2026, 1, 2, 9, 30))

    assert record.with_battery(None) is record
    assert record.to_insert_dict() == {
        "user_id": "elder-1",
        "timestamp": "2026-01-02T09:30:00",
    }


def test_record_with_telemetry():
    record = CheckInRecord(user_id="elder-1").with_battery(BatteryStatus(level=42, is_charging=False))

    payload = record.to_insert_dict()
    assert payload["battery_level"] == 42
    assert payload["is_charging"] is False
