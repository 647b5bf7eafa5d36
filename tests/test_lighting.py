# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Tests for the local lighting and presence heuristics."""

import asyncio

import numpy as np
import pytest

from safecheck.config import HeuristicSettings, SamplerSettings
from safecheck.detection.lighting import LocalFrameHeuristic
from safecheck.detection.local import LocalPresenceDetector
from safecheck.mocks import make_face_frame, make_frame
from safecheck.models.checkin import CaptureFrame


@pytest.fixture
def heuristic():
    return LocalFrameHeuristic.from_settings(HeuristicSettings(), SamplerSettings())


def frame(image):
    return CaptureFrame.from_image(image)


def test_black_frame_is_too_dark(heuristic):
    result = heuristic.screen_lighting(frame(make_frame(5)))

    assert result.is_too_dark
    assert not result.is_too_bright
    assert not result.ok
    assert result.dark_fraction == pytest.approx(1.0)


def test_white_frame_is_too_bright(heuristic):
    result = heuristic.screen_lighting(frame(make_frame(250)))

    assert result.is_too_bright
    assert not result.is_too_dark


def test_mid_gray_frame_is_usable(heuristic):
    assert heuristic.screen_lighting(frame(make_frame(120))).ok


def test_only_the_centre_is_examined(heuristic):
    image = make_frame(0)
    image[100:300, 80:240] = 128  # lit centre, black edges

    assert heuristic.screen_lighting(frame(image)).ok


def test_partly_dark_centre_below_threshold_is_usable(heuristic):
    image = make_frame(128)
    # Darken 60% of the analysed centre columns
    image[:, :176] = 5

    result = heuristic.screen_lighting(frame(image))

    assert result.ok
    assert 0.5 < result.dark_fraction < 0.8


def test_face_frame_looks_present(heuristic):
    result = heuristic.screen_presence(frame(make_face_frame()))

    assert result.looks_present
    assert result.skin_fraction > 0.05
    assert result.content_fraction > 0.4


def test_gray_room_is_not_present(heuristic):
    result = heuristic.screen_presence(frame(make_frame(120)))

    assert not result.looks_present
    assert result.skin_fraction == 0.0


def test_dark_frame_is_never_present(heuristic):
    image = make_face_frame()
    image[:] = (image * 0.1).astype(np.uint8)

    assert not heuristic.screen_presence(frame(image)).looks_present


def test_grayscale_image_is_not_present(heuristic):
    gray = np.full((400, 320), 120, dtype=np.uint8)

    assert not heuristic.screen_presence(frame(gray)).looks_present


def test_lighting_verdict_is_partial(heuristic):
    verdict = heuristic.lighting_verdict(frame(make_frame(5)))

    assert verdict.is_too_dark
    assert not verdict.face_detected
    assert not verdict.in_target_region
    assert verdict.confidence == 0


def test_local_detector_confirms_presence(heuristic):
    detector = LocalPresenceDetector(heuristic)

    verdict = asyncio.run(detector.analyze(frame(make_face_frame())))

    assert verdict.is_success(60)
    assert verdict.guidance_text == "Perfect! Hold still"


def test_local_detector_asks_for_face(heuristic):
    detector = LocalPresenceDetector(heuristic)

    verdict = asyncio.run(detector.analyze(frame(make_frame(120))))

    assert not verdict.face_detected
    assert verdict.guidance_text == "Show your face"
