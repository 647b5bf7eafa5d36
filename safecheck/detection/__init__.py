# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Presence detection tiers.

The tier is chosen explicitly from configuration rather than probed at
runtime, so the choice can be tested and mocked.
"""

import logging
from typing import Optional

from safecheck.detection.base import (
    DetectionError,
    DetectionErrorKind,
    DetectionStrategy,
    FaceDetector,
)
from safecheck.detection.lighting import LocalFrameHeuristic
from safecheck.detection.local import LocalPresenceDetector
from safecheck.detection.remote import RemoteFaceDetector

logger = logging.getLogger(__name__)

__all__ = [
    "DetectionError",
    "DetectionErrorKind",
    "DetectionStrategy",
    "FaceDetector",
    "LocalFrameHeuristic",
    "LocalPresenceDetector",
    "RemoteFaceDetector",
    "get_detector",
    "resolve_strategy",
]


def resolve_strategy(settings, strategy: Optional[DetectionStrategy] = None) -> DetectionStrategy:
    """Decide which detection tier to use.

    An explicit argument wins, then detector.strategy from settings;
    otherwise remote is used only when an endpoint is configured.

    Raises:
        ValueError: If remote is requested without a detector URL
    """
    if strategy is None and settings.detector.strategy:
        strategy = DetectionStrategy(settings.detector.strategy.lower())
    if strategy is None:
        strategy = DetectionStrategy.REMOTE if settings.detector.url else DetectionStrategy.LOCAL

    if strategy == DetectionStrategy.REMOTE and not settings.detector.url:
        raise ValueError("detector.url is required for the remote strategy")
    return strategy


def get_detector(
    settings,
    strategy: Optional[DetectionStrategy] = None,
    use_mock: Optional[bool] = None,
) -> FaceDetector:
    """Factory function to get the configured detector.

    In mock mode the remote tier is replaced by MockFaceDetector so no
    service is needed; the local tier is real either way.

    Args:
        settings: Settings object
        strategy: Override the configured strategy
        use_mock: Override settings.mock_mode if specified

    Returns:
        RemoteFaceDetector, LocalPresenceDetector or MockFaceDetector
    """
    mock_mode = use_mock if use_mock is not None else settings.mock_mode

    if strategy is None and settings.detector.strategy:
        strategy = DetectionStrategy(settings.detector.strategy.lower())

    if mock_mode and strategy != DetectionStrategy.LOCAL:
        from safecheck.mocks import MockFaceDetector
        logger.info("Using MockFaceDetector (mock_mode=True)")
        return MockFaceDetector()

    strategy = resolve_strategy(settings, strategy)

    if strategy == DetectionStrategy.REMOTE:
        logger.info(f"Using RemoteFaceDetector ({settings.detector.url})")
        return RemoteFaceDetector(
            url=settings.detector.url,
            api_key=settings.detector.api_key,
            timeout_seconds=settings.detector.timeout_seconds,
            jpeg_quality=settings.sampler.jpeg_quality,
        )

    logger.info("Using LocalPresenceDetector (no network)")
    return LocalPresenceDetector(
        LocalFrameHeuristic.from_settings(settings.heuristic, settings.sampler)
    )
