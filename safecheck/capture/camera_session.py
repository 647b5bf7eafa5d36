# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Camera session for the check-in screen.

Owns the live video stream for exactly one check-in session. Opening
waits until the device actually delivers a frame so the sampler never
analyses a blank image; closing releases the hardware and is safe to
call any number of times.
"""

import asyncio
import logging
import os
import sys
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class CameraErrorKind(Enum):
    """Why the camera could not be acquired."""

    PERMISSION_DENIED = "permission_denied"
    DEVICE_NOT_FOUND = "device_not_found"
    DEVICE_BUSY = "device_busy"
    UNKNOWN = "unknown"


@dataclass
class CameraOpenResult:
    """Result of a camera open operation."""

    success: bool = False
    width: int = 0
    height: int = 0
    open_time_ms: float = 0.0
    error: Optional[CameraErrorKind] = None
    message: Optional[str] = None


class CameraSession:
    """Acquires and releases the front-facing camera.

    Usage:
        session = CameraSession(device_index=0)
        result = await session.open()
        if result.success:
            frame = await session.read_frame()
        session.close()
    """

    def __init__(
        self,
        device_index: int = 0,
        width: int = 480,
        height: int = 640,
        facing_mode: str = "user",
        first_frame_timeout_seconds: float = 5.0,
    ):
        """Initialize camera session.

        Args:
            device_index: OpenCV device index
            width: Requested frame width
            height: Requested frame height
            facing_mode: Requested facing (informational for OpenCV backends)
            first_frame_timeout_seconds: Max wait for the first readable frame
        """
        self.device_index = device_index
        self.width = width
        self.height = height
        self.facing_mode = facing_mode
        self.first_frame_timeout_seconds = first_frame_timeout_seconds

        self._capture: Optional[cv2.VideoCapture] = None

    @classmethod
    def from_settings(cls, settings) -> "CameraSession":
        """Build a session from CameraSettings."""
        return cls(
            device_index=settings.device_index,
            width=settings.width,
            height=settings.height,
            facing_mode=settings.facing_mode,
            first_frame_timeout_seconds=settings.first_frame_timeout_seconds,
        )

    @property
    def is_open(self) -> bool:
        """Whether a stream is currently held."""
        return self._capture is not None

    @property
    def device_path(self) -> Optional[str]:
        """V4L2 device node for the index (Linux only)."""
        if sys.platform.startswith("linux"):
            return f"/dev/video{self.device_index}"
        return None

    def _preflight(self) -> Optional[CameraOpenResult]:
        """Check the device node before handing it to OpenCV.

        OpenCV reports every failure as "not opened"; on Linux the device
        node tells a missing camera apart from a permission problem.
        """
        path = self.device_path
        if path is None:
            return None
        if not os.path.exists(path):
            return CameraOpenResult(
                error=CameraErrorKind.DEVICE_NOT_FOUND,
                message=f"{path} does not exist",
            )
        if not os.access(path, os.R_OK | os.W_OK):
            return CameraOpenResult(
                error=CameraErrorKind.PERMISSION_DENIED,
                message=f"No read/write access to {path}",
            )
        return None

    def _open_blocking(self) -> CameraOpenResult:
        """Open the device and wait for the first frame (runs in a thread)."""
        start_time = time.time()

        failure = self._preflight()
        if failure is not None:
            failure.open_time_ms = (time.time() - start_time) * 1000
            return failure

        cap = cv2.VideoCapture(self.device_index)
        try:
            if not cap.isOpened():
                cap.release()
                return CameraOpenResult(
                    error=CameraErrorKind.DEVICE_NOT_FOUND,
                    open_time_ms=(time.time() - start_time) * 1000,
                    message=f"Failed to open camera {self.device_index}",
                )

            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

            # The device can open fine yet deliver nothing while another
            # process holds the stream
            deadline = start_time + self.first_frame_timeout_seconds
            frame = None
            while time.time() < deadline:
                ret, frame = cap.read()
                if ret and frame is not None:
                    break
                frame = None
                time.sleep(0.05)

            if frame is None:
                cap.release()
                return CameraOpenResult(
                    error=CameraErrorKind.DEVICE_BUSY,
                    open_time_ms=(time.time() - start_time) * 1000,
                    message="Camera opened but produced no frames",
                )

        except cv2.error as e:
            cap.release()
            return CameraOpenResult(
                error=CameraErrorKind.UNKNOWN,
                open_time_ms=(time.time() - start_time) * 1000,
                message=f"OpenCV error: {e}",
            )

        self._capture = cap
        height, width = frame.shape[:2]
        return CameraOpenResult(
            success=True,
            width=width,
            height=height,
            open_time_ms=(time.time() - start_time) * 1000,
        )

    async def open(self) -> CameraOpenResult:
        """Acquire the camera stream.

        Returns only once the first frame is readable. Never raises;
        failures are reported through CameraOpenResult.error.

        Returns:
            CameraOpenResult describing the stream or the failure
        """
        if self.is_open:
            logger.debug("Camera already open")
            return CameraOpenResult(success=True, width=self.width, height=self.height)

        logger.info(
            f"Opening camera {self.device_index} "
            f"({self.width}x{self.height}, facing={self.facing_mode})"
        )

        try:
            result = await asyncio.to_thread(self._open_blocking)
        except Exception as e:
            logger.error(f"Error opening camera: {e}")
            return CameraOpenResult(error=CameraErrorKind.UNKNOWN, message=str(e))

        if result.success:
            logger.info(
                f"Camera active ({result.width}x{result.height}) "
                f"in {result.open_time_ms:.0f}ms"
            )
        else:
            logger.error(f"Camera open failed ({result.error.value}): {result.message}")
        return result

    async def read_frame(self) -> Optional[np.ndarray]:
        """Read the latest frame from the stream.

        Returns:
            BGR frame, or None if the stream is closed or not producing frames
        """
        cap = self._capture
        if cap is None:
            return None

        try:
            ret, frame = await asyncio.to_thread(cap.read)
        except cv2.error as e:
            logger.warning(f"OpenCV error reading frame: {e}")
            return None

        if not ret or frame is None:
            return None
        return frame

    def close(self) -> None:
        """Release the camera stream.

        Idempotent: safe when already closed or never opened.
        """
        cap = self._capture
        self._capture = None
        if cap is None:
            return

        try:
            cap.release()
        except cv2.error as e:
            logger.warning(f"Error releasing camera: {e}")
        logger.info("Camera released")


def get_camera(settings, use_mock: Optional[bool] = None):
    """Factory function to get a camera session based on settings.

    Args:
        settings: Settings object with mock_mode and camera settings
        use_mock: Override settings.mock_mode if specified

    Returns:
        CameraSession or MockCamera depending on settings
    """
    mock_mode = use_mock if use_mock is not None else settings.mock_mode

    if mock_mode:
        from safecheck.mocks import MockCamera
        logger.info("Using MockCamera (mock_mode=True)")
        return MockCamera()

    logger.info(f"Using CameraSession (device {settings.camera.device_index})")
    return CameraSession.from_settings(settings.camera)
