# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Shared fixtures for the SafeCheck test suite."""

from types import SimpleNamespace

import pytest

from safecheck.capture.frame_sampler import FrameSampler
from safecheck.checkin.scheduler import ManualScheduler
from safecheck.checkin.state_machine import CheckInStateMachine
from safecheck.config import Settings
from safecheck.detection.lighting import LocalFrameHeuristic
from safecheck.mocks import MockCamera, MockFaceDetector, MockRecordSink, make_face_frame, make_frame
from safecheck.models.checkin import DetectionVerdict


def centered_face(confidence: int = 75) -> DetectionVerdict:
    return DetectionVerdict(
        face_detected=True,
        in_target_region=True,
        confidence=confidence,
        guidance_text="Perfect! Hold still",
    )


def no_face() -> DetectionVerdict:
    return DetectionVerdict(face_detected=False, guidance_text="Show your face")


def dark_frame():
    return make_frame(10)


def bright_frame():
    return make_frame(250)


@pytest.fixture
def settings(tmp_path):
    s = Settings()
    s.database.path = str(tmp_path / "safecheck.db")
    s.logging.file = ""
    return s


@pytest.fixture
def make_session(settings):
    """Build a state machine wired to mocks and a manual clock."""

    def _make(
        frames=None,
        script=None,
        camera=None,
        detector=None,
        sink=None,
        telemetry=None,
        user_id="elder-1",
    ):
        scheduler = ManualScheduler()
        camera = camera or MockCamera(frames=frames if frames is not None else [make_face_frame()])
        detector = detector or MockFaceDetector(script=script if script is not None else [centered_face()])
        sink = sink or MockRecordSink()
        sampler = FrameSampler(camera, width=320, height=400)
        heuristic = LocalFrameHeuristic.from_settings(settings.heuristic, settings.sampler)

        machine = CheckInStateMachine(
            settings=settings,
            camera=camera,
            sampler=sampler,
            heuristic=heuristic,
            detector=detector,
            record_sink=sink,
            user_id=user_id,
            scheduler=scheduler,
            telemetry=telemetry,
        )
        return SimpleNamespace(
            machine=machine,
            scheduler=scheduler,
            camera=camera,
            detector=detector,
            sink=sink,
            settings=settings,
        )

    return _make
