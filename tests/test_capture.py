# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Tests for camera session lifecycle and frame sampling."""

import asyncio

import numpy as np

from safecheck.capture.camera_session import CameraErrorKind, CameraSession, get_camera
from safecheck.capture.frame_sampler import (
    FrameSampler,
    data_uri_to_frame,
    frame_to_data_uri,
    frame_to_jpeg,
    resize_frame,
)
from safecheck.mocks import MockCamera, make_frame


def test_close_when_never_opened_is_safe():
    session = CameraSession(device_index=0)

    session.close()
    session.close()

    assert not session.is_open


def test_read_frame_when_closed_returns_none():
    session = CameraSession(device_index=0)

    assert asyncio.run(session.read_frame()) is None


def test_missing_device_reports_not_found():
    session = CameraSession(device_index=97, first_frame_timeout_seconds=0.2)

    result = asyncio.run(session.open())

    assert not result.success
    assert result.error == CameraErrorKind.DEVICE_NOT_FOUND
    assert not session.is_open
    session.close()


def test_get_camera_mock(settings):
    assert isinstance(get_camera(settings, use_mock=True), MockCamera)
    assert isinstance(get_camera(settings, use_mock=False), CameraSession)


def test_sampler_downscales_and_counts():
    camera = MockCamera(frames=[make_frame(100, width=480, height=640)])
    sampler = FrameSampler(camera, width=320, height=400)

    async def run():
        await camera.open()
        return await sampler.capture_still(), await sampler.capture_still()

    first, second = asyncio.run(run())

    assert (first.width, first.height) == (320, 400)
    assert first.image.shape == (400, 320, 3)
    assert (first.sequence, second.sequence) == (1, 2)


def test_sampler_mirrors_frames():
    image = make_frame(0)
    image[:, 160:] = 255  # right half white
    camera = MockCamera(frames=[image])
    sampler = FrameSampler(camera, width=320, height=400, mirror=True)

    async def run():
        await camera.open()
        return await sampler.capture_still()

    frame = asyncio.run(run())

    assert frame.image[:, :160].mean() == 255
    assert frame.image[:, 160:].mean() == 0


def test_sampler_returns_none_before_stream_is_ready():
    camera = MockCamera(frames=[None])
    sampler = FrameSampler(camera)

    async def run():
        before_open = await sampler.capture_still()
        await camera.open()
        return before_open, await sampler.capture_still()

    assert asyncio.run(run()) == (None, None)


def test_jpeg_data_uri_decodes_back_to_an_image():
    image = make_frame(128)

    data_uri = frame_to_data_uri(image, quality=70)
    decoded = data_uri_to_frame(data_uri)

    assert data_uri.startswith("data:image/jpeg;base64,")
    assert decoded.shape == image.shape
    assert abs(float(decoded.mean()) - 128) < 3


def test_jpeg_quality_affects_size():
    rng = np.random.default_rng(0)
    noisy = rng.integers(0, 255, size=(400, 320, 3), dtype=np.uint8)

    assert len(frame_to_jpeg(noisy, quality=30)) < len(frame_to_jpeg(noisy, quality=95))


def test_resize_frame_keeps_aspect():
    assert resize_frame(make_frame(0, width=1280, height=960)).shape == (480, 640, 3)
    small = make_frame(0, width=320, height=400)
    assert resize_frame(small) is small
