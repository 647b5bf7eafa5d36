# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Tests for the face-analysis client against a local aiohttp server."""

import asyncio

import pytest
from aiohttp import web
from aiohttp import test_utils

from safecheck.detection import DetectionStrategy, get_detector, resolve_strategy
from safecheck.detection.base import DetectionError, DetectionErrorKind
from safecheck.detection.local import LocalPresenceDetector
from safecheck.detection.remote import FaceAnalysisResponse, RemoteFaceDetector
from safecheck.mocks import MockFaceDetector, make_face_frame
from safecheck.models.checkin import CaptureFrame

GOOD_RESPONSE = {
    "face_detected": True,
    "face_in_oval": True,
    "is_dark": False,
    "is_bright": False,
    "guidance": "Perfect! Hold still",
    "confidence": 75,
}


def analyze_with(handler, **detector_kwargs):
    """Serve handler at /face-detect and run one analysis against it."""

    async def run():
        app = web.Application()
        app.router.add_post("/face-detect", handler)
        server = test_utils.TestServer(app)
        await server.start_server()
        detector = RemoteFaceDetector(str(server.make_url("/face-detect")), **detector_kwargs)
        try:
            return await detector.analyze(CaptureFrame.from_image(make_face_frame()))
        finally:
            await detector.close()
            await server.close()

    return asyncio.run(run())


def json_handler(body, status=200):
    async def handler(request):
        return web.json_response(body, status=status)

    return handler


def test_successful_verdict():
    seen = {}

    async def handler(request):
        seen["body"] = await request.json()
        seen["auth"] = request.headers.get("Authorization")
        return web.json_response(GOOD_RESPONSE)

    verdict = analyze_with(handler, api_key="token-1")

    assert verdict.face_detected
    assert verdict.in_target_region
    assert verdict.confidence == 75
    assert verdict.guidance_text == "Perfect! Hold still"
    assert seen["body"]["image"].startswith("data:image/jpeg;base64,")
    assert seen["auth"] == "Bearer token-1"


def test_no_auth_header_without_key():
    seen = {}

    async def handler(request):
        seen["auth"] = request.headers.get("Authorization")
        return web.json_response(GOOD_RESPONSE)

    analyze_with(handler)

    assert seen["auth"] is None


def test_fractional_confidence_is_rounded():
    verdict = analyze_with(json_handler(dict(GOOD_RESPONSE, confidence=59.6)))

    assert verdict.confidence == 60


@pytest.mark.parametrize("status,kind", [
    (429, DetectionErrorKind.RATE_LIMITED),
    (402, DetectionErrorKind.QUOTA_EXHAUSTED),
    (500, DetectionErrorKind.SERVICE),
    (404, DetectionErrorKind.SERVICE),
])
def test_error_statuses(status, kind):
    with pytest.raises(DetectionError) as exc_info:
        analyze_with(json_handler({"error": "nope"}, status=status))

    assert exc_info.value.kind == kind
    assert exc_info.value.status == status


@pytest.mark.parametrize("body", [
    {"face_in_oval": True},  # face_detected missing
    {"face_detected": "yes"},
    {"face_detected": True, "confidence": 150},
    {"face_detected": True, "guidance": 7},
    [GOOD_RESPONSE],
])
def test_malformed_verdicts(body):
    with pytest.raises(DetectionError) as exc_info:
        analyze_with(json_handler(body))

    assert exc_info.value.kind == DetectionErrorKind.MALFORMED


def test_non_json_body_is_malformed():
    async def handler(request):
        return web.Response(text="Sure! Here is the analysis: {face", content_type="text/plain")

    with pytest.raises(DetectionError) as exc_info:
        analyze_with(handler)

    assert exc_info.value.kind == DetectionErrorKind.MALFORMED


def test_timeout():
    async def handler(request):
        await asyncio.sleep(1.0)
        return web.json_response(GOOD_RESPONSE)

    with pytest.raises(DetectionError) as exc_info:
        analyze_with(handler, timeout_seconds=0.1)

    assert exc_info.value.kind == DetectionErrorKind.TIMEOUT


def test_connection_refused_is_transport_error():
    async def run():
        app = web.Application()
        server = test_utils.TestServer(app)
        await server.start_server()
        url = str(server.make_url("/face-detect"))
        await server.close()

        detector = RemoteFaceDetector(url, timeout_seconds=2)
        try:
            await detector.analyze(CaptureFrame.from_image(make_face_frame()))
        finally:
            await detector.close()

    with pytest.raises(DetectionError) as exc_info:
        asyncio.run(run())

    assert exc_info.value.kind == DetectionErrorKind.TRANSPORT


def test_extra_fields_are_ignored():
    response = FaceAnalysisResponse.model_validate(dict(GOOD_RESPONSE, model="x"))

    assert response.to_verdict().is_success(60)


def test_strategy_resolution(settings):
    assert resolve_strategy(settings) == DetectionStrategy.LOCAL

    settings.detector.url = "http://localhost:8200/face-detect"
    assert resolve_strategy(settings) == DetectionStrategy.REMOTE
    assert resolve_strategy(settings, DetectionStrategy.LOCAL) == DetectionStrategy.LOCAL

    settings.detector.strategy = "local"
    assert resolve_strategy(settings) == DetectionStrategy.LOCAL


def test_remote_without_url_is_rejected(settings):
    with pytest.raises(ValueError):
        resolve_strategy(settings, DetectionStrategy.REMOTE)


def test_get_detector(settings):
    assert isinstance(get_detector(settings), LocalPresenceDetector)

    settings.detector.url = "http://localhost:8200/face-detect"
    detector = get_detector(settings)
    assert isinstance(detector, RemoteFaceDetector)
    assert detector.url == "http://localhost:8200/face-detect"


def test_get_detector_mock_mode(settings):
    assert isinstance(get_detector(settings, use_mock=True), MockFaceDetector)
    assert isinstance(
        get_detector(settings, DetectionStrategy.LOCAL, use_mock=True),
        LocalPresenceDetector,
    )
