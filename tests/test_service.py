# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Tests for the face-detect service."""

import base64

import pytest
from fastapi.testclient import TestClient

from safecheck.capture.frame_sampler import frame_to_data_uri
from safecheck.mocks import make_face_frame, make_frame
from safecheck.models.checkin import DetectionVerdict
from safecheck.service.analyzer import (
    GUIDANCE_MOVE_BACK,
    GUIDANCE_MOVE_CLOSER,
    GUIDANCE_MOVE_DOWN,
    GUIDANCE_MOVE_LEFT,
    GUIDANCE_MOVE_RIGHT,
    GUIDANCE_MOVE_UP,
    GUIDANCE_PERFECT,
    GUIDANCE_SHOW_FACE,
    GUIDANCE_TOO_DARK,
    FaceAnalyzer,
    confidence_from_neighbors,
    guidance_for_bbox,
)
from safecheck.service.server import create_app


class StubAnalyzer:
    def __init__(self, verdict=None, loaded=True, error=None):
        self.verdict = verdict or DetectionVerdict(
            face_detected=True,
            in_target_region=True,
            confidence=80,
            guidance_text=GUIDANCE_PERFECT,
        )
        self.loaded = loaded
        self.error = error
        self.frames = []

    @property
    def is_loaded(self):
        return self.loaded

    def load(self):
        return self.loaded

    def analyze(self, frame):
        self.frames.append(frame)
        if self.error:
            raise self.error
        return self.verdict


@pytest.fixture
def stub():
    return StubAnalyzer()


@pytest.fixture
def client(settings, stub):
    with TestClient(create_app(settings, analyzer=stub)) as client:
        yield client


@pytest.mark.parametrize("bbox,expected", [
    ((80, 120, 160, 160), (True, GUIDANCE_PERFECT)),
    ((140, 180, 40, 40), (False, GUIDANCE_MOVE_CLOSER)),
    ((10, 50, 300, 300), (False, GUIDANCE_MOVE_BACK)),
    ((220, 150, 100, 100), (False, GUIDANCE_MOVE_LEFT)),
    ((0, 150, 100, 100), (False, GUIDANCE_MOVE_RIGHT)),
    ((110, 300, 100, 100), (False, GUIDANCE_MOVE_UP)),
    ((110, 0, 100, 60), (False, GUIDANCE_MOVE_DOWN)),
])
def test_guidance_for_bbox(bbox, expected):
    assert guidance_for_bbox(bbox, 320, 400) == expected


def test_confidence_from_neighbors():
    assert confidence_from_neighbors(0) == 50
    assert confidence_from_neighbors(4) == 70
    assert confidence_from_neighbors(40) == 100


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_face_detect_returns_verdict(client, stub):
    response = client.post("/face-detect", json={"image": frame_to_data_uri(make_face_frame())})

    assert response.status_code == 200
    assert response.json() == {
        "face_detected": True,
        "face_in_oval": True,
        "is_dark": False,
        "is_bright": False,
        "guidance": GUIDANCE_PERFECT,
        "confidence": 80,
    }
    assert stub.frames[0].shape == (400, 320, 3)


def test_bare_base64_is_accepted(client, stub):
    data_uri = frame_to_data_uri(make_face_frame())
    bare = data_uri.split(",", 1)[1]

    response = client.post("/face-detect", json={"image": bare})

    assert response.status_code == 200


def test_missing_image_is_400(client):
    response = client.post("/face-detect", json={})

    assert response.status_code == 400
    assert response.json() == {"error": "No image provided"}


def test_non_json_body_is_400(client):
    response = client.post(
        "/face-detect",
        content=b"not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400


@pytest.mark.parametrize("image", [
    "data:image/jpeg;base64,@@@not-base64@@@",
    base64.b64encode(b"definitely not a jpeg").decode("ascii"),
])
def test_undecodable_image_is_422(client, image):
    response = client.post("/face-detect", json={"image": image})

    assert response.status_code == 422


def test_analysis_error_is_500(settings):
    stub = StubAnalyzer(error=RuntimeError("model crashed"))

    with TestClient(create_app(settings, analyzer=stub)) as client:
        response = client.post("/face-detect", json={"image": frame_to_data_uri(make_face_frame())})

    assert response.status_code == 500
    assert response.json() == {"error": "Face analysis failed"}


def test_model_not_loaded_is_503(settings):
    stub = StubAnalyzer(loaded=False)

    with TestClient(create_app(settings, analyzer=stub)) as client:
        health = client.get("/health").json()
        response = client.post("/face-detect", json={"image": frame_to_data_uri(make_face_frame())})

    assert health["status"] == "degraded"
    assert response.status_code == 503


def test_analyzer_reports_darkness():
    analyzer = FaceAnalyzer()
    assert analyzer.load()

    verdict = analyzer.analyze(make_frame(5))

    assert verdict.is_too_dark
    assert not verdict.face_detected
    assert verdict.guidance_text == GUIDANCE_TOO_DARK


def test_analyzer_asks_for_face_in_empty_room():
    analyzer = FaceAnalyzer()
    assert analyzer.load()

    verdict = analyzer.analyze(make_frame(120))

    assert not verdict.face_detected
    assert verdict.guidance_text == GUIDANCE_SHOW_FACE


def test_analyzer_requires_model():
    with pytest.raises(RuntimeError):
        FaceAnalyzer().analyze(make_frame(120))


def test_missing_cascade_fails_to_load(tmp_path):
    analyzer = FaceAnalyzer(cascade_path=str(tmp_path / "missing.xml"))

    assert analyzer.load() is False
    assert not analyzer.is_loaded
