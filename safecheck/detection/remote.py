# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Client for the remote face-analysis service.

Sends a captured frame as a JPEG data URI and validates the structured
verdict that comes back. Anything other than a well-formed verdict is a
DetectionError.

Request:
    POST {url}  {"image": "data:image/jpeg;base64,..."}

Response:
    {"face_detected": bool, "face_in_oval": bool, "is_dark": bool,
     "is_bright": bool, "guidance": str, "confidence": 0-100}
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError

from safecheck.capture.frame_sampler import frame_to_data_uri
from safecheck.detection.base import (
    DetectionError,
    DetectionErrorKind,
    DetectionStrategy,
    FaceDetector,
)
from safecheck.models.checkin import CaptureFrame, DetectionVerdict

logger = logging.getLogger(__name__)


class FaceAnalysisResponse(BaseModel):
    """Schema of a successful face-analysis response."""

    model_config = ConfigDict(extra="ignore")

    face_detected: StrictBool
    face_in_oval: StrictBool = False
    is_dark: StrictBool = False
    is_bright: StrictBool = False
    guidance: StrictStr = ""
    confidence: float = Field(default=0.0, ge=0, le=100, strict=True)

    def to_verdict(self) -> DetectionVerdict:
        """Convert to the internal verdict type."""
        return DetectionVerdict(
            face_detected=self.face_detected,
            in_target_region=self.face_in_oval,
            is_too_dark=self.is_dark,
            is_too_bright=self.is_bright,
            confidence=int(round(self.confidence)),
            guidance_text=self.guidance,
        )


class RemoteFaceDetector(FaceDetector):
    """Face detector that calls the face-analysis service.

    Usage:
        detector = RemoteFaceDetector(url="http://localhost:8200/face-detect")
        try:
            verdict = await detector.analyze(frame)
        except DetectionError as e:
            count_failure(e)
        await detector.close()
    """

    strategy = DetectionStrategy.REMOTE

    def __init__(
        self,
        url: str,
        api_key: str = "",
        timeout_seconds: float = 15.0,
        jpeg_quality: int = 70,
    ):
        """Initialize remote detector.

        Args:
            url: Face-analysis endpoint
            api_key: Optional bearer token
            timeout_seconds: Total request timeout
            jpeg_quality: JPEG quality for the uploaded frame
        """
        self.url = url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.jpeg_quality = jpeg_quality

        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def analyze(self, frame: CaptureFrame) -> DetectionVerdict:
        """Send the frame for analysis.

        Args:
            frame: Captured frame (ideally ~320x400)

        Returns:
            Parsed DetectionVerdict

        Raises:
            DetectionError: On transport failure, error status or bad payload
        """
        image = frame_to_data_uri(frame.image, quality=self.jpeg_quality)
        if image is None:
            raise DetectionError(DetectionErrorKind.MALFORMED, "Could not encode frame")

        try:
            session = await self._get_session()
            async with session.post(
                self.url,
                json={"image": image},
                headers=self._headers(),
            ) as resp:
                if resp.status != 200:
                    raise self._status_error(resp.status, await resp.text())

                try:
                    data = await resp.json(content_type=None)
                except ValueError as e:
                    raise DetectionError(
                        DetectionErrorKind.MALFORMED, f"Response is not JSON: {e}"
                    )

        except asyncio.TimeoutError:
            raise DetectionError(DetectionErrorKind.TIMEOUT, "Face analysis timed out")
        except aiohttp.ClientError as e:
            raise DetectionError(DetectionErrorKind.TRANSPORT, f"Connection error: {e}")

        verdict = self._parse_verdict(data)
        logger.debug(
            f"Remote verdict frame {frame.sequence}: face={verdict.face_detected} "
            f"oval={verdict.in_target_region} conf={verdict.confidence}"
        )
        return verdict

    def _status_error(self, status: int, body: str) -> DetectionError:
        """Map an HTTP error status to a DetectionError."""
        if status == 429:
            return DetectionError(DetectionErrorKind.RATE_LIMITED, "Rate limited", status)
        if status == 402:
            return DetectionError(DetectionErrorKind.QUOTA_EXHAUSTED, "Quota exhausted", status)
        return DetectionError(DetectionErrorKind.SERVICE, body[:200] or "Service error", status)

    def _parse_verdict(self, data: Any) -> DetectionVerdict:
        """Validate a response body against the verdict schema."""
        if not isinstance(data, dict):
            raise DetectionError(DetectionErrorKind.MALFORMED, "Response is not a JSON object")
        try:
            return FaceAnalysisResponse.model_validate(data).to_verdict()
        except ValidationError as e:
            raise DetectionError(
                DetectionErrorKind.MALFORMED,
                f"Invalid verdict: {e.error_count()} field error(s)",
            )
