# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Local pixel-statistics screening of captured frames.

Cheap, network-free checks run on every sample before any remote call:
lighting adequacy, and a deliberately crude skin-tone presence estimate
for when no face-analysis service is available. Only the central region
of the frame is examined; edges are unreliable.

Pixel rules (channel values 0-255):
    near-black  mean(R, G, B) < dark_level
    near-white  mean(R, G, B) > bright_level
    content     any channel > content_level
    skin        R > 60, G > 40, B > 20, R > G, R > B
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from safecheck.models.checkin import CaptureFrame, DetectionVerdict

logger = logging.getLogger(__name__)


@dataclass
class LightingResult:
    """Result of the lighting screen."""

    is_too_dark: bool = False
    is_too_bright: bool = False
    dark_fraction: float = 0.0
    bright_fraction: float = 0.0
    mean_brightness: float = 0.0

    @property
    def ok(self) -> bool:
        return not (self.is_too_dark or self.is_too_bright)


@dataclass
class PresenceResult:
    """Result of the skin-tone presence screen."""

    looks_present: bool = False
    content_fraction: float = 0.0
    skin_fraction: float = 0.0


class LocalFrameHeuristic:
    """Lighting and presence heuristics over the centre of a frame."""

    def __init__(
        self,
        dark_level: int = 40,
        bright_level: int = 215,
        lighting_fraction: float = 0.8,
        content_level: int = 30,
        content_fraction: float = 0.4,
        skin_fraction: float = 0.05,
        center_fraction: float = 0.5,
        analysis_size: Optional[Tuple[int, int]] = (160, 200),
    ):
        """Initialize heuristic.

        Args:
            dark_level: Brightness below which a pixel is near-black
            bright_level: Brightness above which a pixel is near-white
            lighting_fraction: Near-black/white fraction that fails lighting
            content_level: Channel value above which a pixel is non-background
            content_fraction: Minimum non-background fraction for presence
            skin_fraction: Minimum skin-tone fraction for presence
            center_fraction: Side length of the analysed region, relative
            analysis_size: (width, height) to downscale to first, or None
        """
        self.dark_level = dark_level
        self.bright_level = bright_level
        self.lighting_fraction = lighting_fraction
        self.content_level = content_level
        self.content_fraction = content_fraction
        self.skin_fraction = skin_fraction
        self.center_fraction = center_fraction
        self.analysis_size = analysis_size

    @classmethod
    def from_settings(cls, heuristic, sampler=None) -> "LocalFrameHeuristic":
        """Build from HeuristicSettings (and SamplerSettings for the size)."""
        size = (sampler.local_width, sampler.local_height) if sampler is not None else (160, 200)
        return cls(
            dark_level=heuristic.dark_level,
            bright_level=heuristic.bright_level,
            lighting_fraction=heuristic.lighting_fraction,
            content_level=heuristic.content_level,
            content_fraction=heuristic.content_fraction,
            skin_fraction=heuristic.skin_fraction,
            center_fraction=heuristic.center_fraction,
            analysis_size=size,
        )

    def center_region(self, image: np.ndarray) -> np.ndarray:
        """Crop the central region used for every statistic."""
        if self.analysis_size is not None:
            width, height = self.analysis_size
            if image.shape[1] != width or image.shape[0] != height:
                image = cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)

        height, width = image.shape[:2]
        region_h = max(1, int(height * self.center_fraction))
        region_w = max(1, int(width * self.center_fraction))
        y0 = (height - region_h) // 2
        x0 = (width - region_w) // 2
        return image[y0:y0 + region_h, x0:x0 + region_w]

    def screen_lighting(self, frame: CaptureFrame) -> LightingResult:
        """Classify the frame as too dark, too bright, or usable."""
        region = self.center_region(frame.image).astype(np.float32)
        if region.ndim == 2:
            brightness = region
        else:
            brightness = region[..., :3].mean(axis=2)

        dark_fraction = float((brightness < self.dark_level).mean())
        bright_fraction = float((brightness > self.bright_level).mean())

        result = LightingResult(
            is_too_dark=dark_fraction > self.lighting_fraction,
            is_too_bright=bright_fraction > self.lighting_fraction,
            dark_fraction=dark_fraction,
            bright_fraction=bright_fraction,
            mean_brightness=float(brightness.mean()),
        )
        logger.debug(
            f"Lighting frame {frame.sequence}: dark={dark_fraction:.2f} "
            f"bright={bright_fraction:.2f} mean={result.mean_brightness:.0f}"
        )
        return result

    def screen_presence(self, frame: CaptureFrame) -> PresenceResult:
        """Estimate whether a person is in front of the camera.

        Requires usable lighting, enough non-background pixels and a
        minimum of skin-tone pixels; anything doubtful reports absent.
        """
        image = frame.image
        if image.ndim != 3 or image.shape[2] < 3:
            return PresenceResult()

        if not self.screen_lighting(frame).ok:
            return PresenceResult()

        region = self.center_region(image).astype(np.int16)
        b = region[..., 0]
        g = region[..., 1]
        r = region[..., 2]

        content = (r > self.content_level) | (g > self.content_level) | (b > self.content_level)
        skin = (r > 60) & (g > 40) & (b > 20) & (r > g) & (r > b)

        content_fraction = float(content.mean())
        skin_fraction = float(skin.mean())

        return PresenceResult(
            looks_present=(
                content_fraction > self.content_fraction
                and skin_fraction > self.skin_fraction
            ),
            content_fraction=content_fraction,
            skin_fraction=skin_fraction,
        )

    def lighting_verdict(self, frame: CaptureFrame) -> DetectionVerdict:
        """Partial verdict carrying only the lighting flags."""
        lighting = self.screen_lighting(frame)
        return DetectionVerdict(
            is_too_dark=lighting.is_too_dark,
            is_too_bright=lighting.is_too_bright,
        )
