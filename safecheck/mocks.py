# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Mock collaborators for running without a camera or analysis service.

This module provides simulated versions of the camera, the face
detector, the platform capabilities and the record store. They are
used by the test suite and by `safecheck checkin --mock`.

Enable mock mode by:
- Setting MOCK_HARDWARE=true environment variable, OR
- Setting mock_mode: true in safecheck.yaml, OR
- Passing --mock on the command line
"""

import asyncio
import logging
from typing import List, Optional, Sequence, Union

import numpy as np

from safecheck.capture.camera_session import CameraErrorKind, CameraOpenResult
from safecheck.checkin.lockdown import Platform
from safecheck.detection.base import DetectionStrategy, FaceDetector
from safecheck.models.checkin import BatteryStatus, CaptureFrame, CheckInRecord, DetectionVerdict

logger = logging.getLogger(__name__)


def make_frame(
    brightness: int = 128,
    width: int = 320,
    height: int = 400,
) -> np.ndarray:
    """Uniform gray BGR frame."""
    return np.full((height, width, 3), brightness, dtype=np.uint8)


def make_face_frame(width: int = 320, height: int = 400) -> np.ndarray:
    """BGR frame with a skin-toned blob in the middle of a gray room."""
    frame = make_frame(110, width, height)
    cx, cy = width // 2, height // 2
    rx, ry = width // 5, height // 4
    yy, xx = np.ogrid[:height, :width]
    mask = ((xx - cx) / rx) ** 2 + ((yy - cy) / ry) ** 2 <= 1.0
    frame[mask] = (120, 150, 200)  # B, G, R
    return frame


class MockCamera:
    """Simulated camera session.

    Attributes:
        open_error: CameraErrorKind to fail open() with, or None
        frames: Frames returned by read_frame() in order; the last one
            repeats. None entries simulate a stream not producing yet.
        open_count: Times open() was called
        close_count: Times close() was called
    """

    def __init__(
        self,
        frames: Optional[Sequence[Optional[np.ndarray]]] = None,
        open_error: Optional[CameraErrorKind] = None,
        open_delay: float = 0.0,
    ):
        self.frames: List[Optional[np.ndarray]] = list(frames) if frames is not None else [make_face_frame()]
        self.open_error = open_error
        self.open_delay = open_delay
        self.open_count = 0
        self.close_count = 0
        self.read_count = 0
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self) -> CameraOpenResult:
        self.open_count += 1
        if self.open_delay:
            await asyncio.sleep(self.open_delay)

        if self.open_error is not None:
            logger.info(f"Mock camera open failed: {self.open_error.value}")
            return CameraOpenResult(
                success=False,
                error=self.open_error,
                message=f"Mock camera error: {self.open_error.value}",
            )

        self._open = True
        logger.info("Mock camera opened")
        return CameraOpenResult(success=True, width=480, height=640)

    async def read_frame(self) -> Optional[np.ndarray]:
        if not self._open or not self.frames:
            return None
        index = min(self.read_count, len(self.frames) - 1)
        self.read_count += 1
        frame = self.frames[index]
        return None if frame is None else frame.copy()

    def close(self) -> None:
        self.close_count += 1
        self._open = False


VerdictScript = Union[DetectionVerdict, Exception]


class MockFaceDetector(FaceDetector):
    """Detector returning scripted verdicts.

    Each analyze() call takes the next entry; an Exception entry is
    raised instead of returned. Once the script runs out the last entry
    repeats.

    Attributes:
        calls: Frames passed to analyze()
    """

    strategy = DetectionStrategy.REMOTE

    def __init__(self, script: Optional[Sequence[VerdictScript]] = None, delay: float = 0.0):
        self.script: List[VerdictScript] = list(script) if script is not None else [
            DetectionVerdict(
                face_detected=True,
                in_target_region=True,
                confidence=90,
                guidance_text="Perfect! Hold still",
            )
        ]
        self.delay = delay
        self.calls: List[CaptureFrame] = []
        self.closed = False

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def analyze(self, frame: CaptureFrame) -> DetectionVerdict:
        index = min(len(self.calls), len(self.script) - 1)
        self.calls.append(frame)
        if self.delay:
            await asyncio.sleep(self.delay)

        entry = self.script[index]
        if isinstance(entry, Exception):
            raise entry
        return entry

    async def close(self) -> None:
        self.closed = True


class MockPlatform(Platform):
    """Platform that records every effect it is asked to perform.

    Attributes:
        vibrations: Patterns passed to vibrate()
        events: Ordered names of every effect performed
    """

    def __init__(
        self,
        vibration: bool = True,
        fullscreen: bool = True,
        leave_guard: bool = True,
    ):
        self.supports_vibration = vibration
        self.supports_fullscreen = fullscreen
        self.supports_leave_guard = leave_guard
        self.vibrations: List[List[int]] = []
        self.events: List[str] = []
        self.fullscreen = False
        self.guarded = False

    def vibrate(self, pattern: List[int]) -> None:
        self.vibrations.append(list(pattern))
        self.events.append("vibrate")

    def cancel_vibration(self) -> None:
        self.events.append("cancel_vibration")

    def request_fullscreen(self) -> None:
        self.fullscreen = True
        self.events.append("request_fullscreen")

    def exit_fullscreen(self) -> None:
        self.fullscreen = False
        self.events.append("exit_fullscreen")

    def is_fullscreen(self) -> bool:
        return self.fullscreen

    def add_leave_guard(self) -> None:
        self.guarded = True
        self.events.append("add_leave_guard")

    def remove_leave_guard(self) -> None:
        self.guarded = False
        self.events.append("remove_leave_guard")


class MockRecordSink:
    """In-memory check-in store.

    Attributes:
        records: Every record inserted
        fail: Raise on insert when True
    """

    def __init__(self, fail: bool = False):
        self.records: List[CheckInRecord] = []
        self.fail = fail

    async def insert_check_in(self, record: CheckInRecord) -> int:
        if self.fail:
            raise RuntimeError("Mock record sink unavailable")
        self.records.append(record)
        return len(self.records)


class MockTelemetry:
    """Battery source returning a fixed status (or None)."""

    def __init__(self, status: Optional[BatteryStatus] = None):
        self.status = status
        self.read_count = 0

    def read(self) -> Optional[BatteryStatus]:
        self.read_count += 1
        return self.status
