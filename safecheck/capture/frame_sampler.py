# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Still-frame sampling from the live camera stream.

Frames are downscaled to a fixed analysis resolution to bound payload
size and CPU cost.
"""

import base64
import logging
from typing import Optional

import cv2
import numpy as np

from safecheck.models.checkin import CaptureFrame

logger = logging.getLogger(__name__)


class FrameSampler:
    """Captures stills from a camera session.

    The camera may be a CameraSession or anything else offering an async
    read_frame() that returns a BGR array or None.

    Usage:
        sampler = FrameSampler(session, width=320, height=400)
        frame = await sampler.capture_still()
        if frame is not None:
            analyse(frame)
    """

    def __init__(
        self,
        camera,
        width: int = 320,
        height: int = 400,
        mirror: bool = True,
    ):
        """Initialize frame sampler.

        Args:
            camera: Frame source with async read_frame()
            width: Analysis width in pixels
            height: Analysis height in pixels
            mirror: Flip horizontally so frames match the selfie preview
        """
        self.camera = camera
        self.width = width
        self.height = height
        self.mirror = mirror
        self._sequence = 0

    async def capture_still(self) -> Optional[CaptureFrame]:
        """Capture one frame at the analysis resolution.

        Returns:
            CaptureFrame, or None if the stream is not producing frames yet
        """
        image = await self.camera.read_frame()
        if image is None:
            logger.debug("No frame available, skipping sample")
            return None

        if self.mirror:
            image = cv2.flip(image, 1)

        if image.shape[1] != self.width or image.shape[0] != self.height:
            image = cv2.resize(image, (self.width, self.height), interpolation=cv2.INTER_AREA)

        self._sequence += 1
        return CaptureFrame.from_image(image, sequence=self._sequence)


def frame_to_jpeg(
    frame: np.ndarray,
    quality: int = 70,
) -> Optional[bytes]:
    """Convert a frame to JPEG bytes.

    Args:
        frame: BGR image (OpenCV format)
        quality: JPEG quality (0-100)

    Returns:
        JPEG bytes or None on error
    """
    try:
        encode_params = [cv2.IMWRITE_JPEG_QUALITY, quality]
        success, encoded = cv2.imencode(".jpg", frame, encode_params)

        if success:
            return encoded.tobytes()
        return None

    except cv2.error as e:
        logger.error(f"Error encoding frame to JPEG: {e}")
        return None


def frame_to_data_uri(frame: np.ndarray, quality: int = 70) -> Optional[str]:
    """Encode a frame as a JPEG data URI for the face-analysis service."""
    jpeg = frame_to_jpeg(frame, quality=quality)
    if jpeg is None:
        return None
    return "data:image/jpeg;base64," + base64.b64encode(jpeg).decode("ascii")


def data_uri_to_frame(data_uri: str) -> Optional[np.ndarray]:
    """Decode a base64 image data URI (or bare base64) into a BGR frame.

    Returns:
        Decoded frame, or None if the payload is not a readable image
    """
    payload = data_uri.split(",", 1)[1] if data_uri.startswith("data:") else data_uri
    try:
        raw = base64.b64decode(payload, validate=True)
    except ValueError:
        return None

    nparr = np.frombuffer(raw, np.uint8)
    if nparr.size == 0:
        return None
    return cv2.imdecode(nparr, cv2.IMREAD_COLOR)


def resize_frame(
    frame: np.ndarray,
    max_width: int = 640,
    max_height: int = 800,
) -> np.ndarray:
    """Resize frame while maintaining aspect ratio.

    Args:
        frame: BGR image
        max_width: Maximum width
        max_height: Maximum height

    Returns:
        Resized frame
    """
    height, width = frame.shape[:2]

    if width <= max_width and height <= max_height:
        return frame

    scale = min(max_width / width, max_height / height)
    new_width = int(width * scale)
    new_height = int(height * scale)

    return cv2.resize(frame, (new_width, new_height), interpolation=cv2.INTER_AREA)
