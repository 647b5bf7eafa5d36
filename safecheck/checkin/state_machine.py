# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""State machine for the face-presence check-in.

Turns a live camera feed into a single "I am present" event, degrading
from the face-analysis service to the manual one-tap confirmation when
the camera, the lighting or the detection keeps failing.

State Flow:
    IDLE -> CAMERA_STARTING (user starts a check-in; counters reset)
    CAMERA_STARTING -> SCANNING (camera delivers its first frame)
    CAMERA_STARTING -> MANUAL_FALLBACK (any camera error)
    SCANNING -> SCANNING (lighting/no-face failure under budget, or
                          face present but needs adjusting)
    SCANNING -> SUCCESS (centered face with enough confidence)
    SCANNING -> MANUAL_FALLBACK (lighting or detection budget used up)
    MANUAL_FALLBACK -> SUCCESS (user confirms; no camera involved)
    MANUAL_FALLBACK -> CAMERA_STARTING (user retries)
    SUCCESS -> IDLE (after the confirmation display)
    * -> IDLE (screen closed)

Usage:
    from safecheck.checkin.state_machine import CheckInStateMachine

    sm = CheckInStateMachine(
        settings, camera, sampler, heuristic, detector, database, user_id
    )
    await sm.start()
"""

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from safecheck.capture.camera_session import CameraErrorKind
from safecheck.checkin.scheduler import AsyncioScheduler, Scheduler, TimerHandle
from safecheck.detection.base import DetectionError, DetectionErrorKind
from safecheck.models.checkin import (
    AttemptCounter,
    CheckInPhase,
    CheckInRecord,
    CheckInSessionState,
    DetectionVerdict,
    IndicatorColor,
)

logger = logging.getLogger(__name__)


class CheckInStateMachine:
    """Orchestrates camera, sampling, detection and the retry policy.

    All mutation happens on the event loop: timer callbacks and awaited
    I/O completions. Sampling ticks never overlap; a tick arriving while
    the previous one is still analysing is dropped.

    Attributes:
        state: Current CheckInSessionState snapshot
        counters: Copy of the current AttemptCounter
    """

    def __init__(
        self,
        settings,
        camera,
        sampler,
        heuristic,
        detector,
        record_sink,
        user_id: str,
        scheduler: Optional[Scheduler] = None,
        telemetry=None,
    ):
        """Initialize state machine.

        Args:
            settings: Settings object (checkin, sampler, messages, telemetry)
            camera: CameraSession (or mock) with open()/close()
            sampler: FrameSampler producing CaptureFrames
            heuristic: LocalFrameHeuristic for the lighting screen
            detector: FaceDetector for the presence verdict
            record_sink: Object with async insert_check_in(record)
            user_id: Who is checking in
            scheduler: Timer source (AsyncioScheduler if not provided)
            telemetry: Optional battery source with read()
        """
        self.settings = settings
        self.camera = camera
        self.sampler = sampler
        self.heuristic = heuristic
        self.detector = detector
        self.record_sink = record_sink
        self.user_id = user_id
        self.scheduler = scheduler or AsyncioScheduler()
        self.telemetry = telemetry

        self.messages = settings.messages
        self._policy = settings.checkin

        self._state = CheckInSessionState()
        self._counter = AttemptCounter(
            max_lighting_failures=self._policy.max_lighting_failures,
            max_detection_failures=self._policy.max_detection_failures,
        )

        # Timers
        self._sample_timer: Optional[TimerHandle] = None
        self._release_timer: Optional[TimerHandle] = None
        self._reset_timer: Optional[TimerHandle] = None

        # Session guards
        self._generation = 0
        self._analyzing = False
        self._checked_in = False

        self._listeners: List[Callable[[CheckInSessionState], None]] = []
        self._check_in_listeners: List[Callable[[CheckInRecord], None]] = []

        logger.info(f"CheckInStateMachine initialized (user: {user_id})")

    # ==================== Properties ====================

    @property
    def state(self) -> CheckInSessionState:
        """Current session state."""
        return self._state

    @property
    def phase(self) -> CheckInPhase:
        return self._state.phase

    @property
    def counters(self) -> AttemptCounter:
        """Snapshot of the failure counters."""
        return replace(self._counter)

    @property
    def is_analyzing(self) -> bool:
        """Whether a sampling cycle is in flight."""
        return self._analyzing

    def get_status(self) -> Dict[str, Any]:
        """Get session status for display or logging."""
        status = self._state.to_dict()
        status.update({
            "user_id": self.user_id,
            "lighting_failures": self._counter.lighting_failures,
            "detection_failures": self._counter.detection_failures,
            "checked_in": self._checked_in,
        })
        return status

    def add_listener(self, callback: Callable[[CheckInSessionState], None]) -> None:
        """Register a callback for every state change."""
        self._listeners.append(callback)

    def add_check_in_listener(self, callback: Callable[[CheckInRecord], None]) -> None:
        """Register a callback for the check-in event."""
        self._check_in_listeners.append(callback)

    # ==================== User Actions ====================

    async def start(self) -> None:
        """Begin a check-in: reset counters, open the camera, start scanning."""
        if self.phase.is_active:
            logger.warning(f"Check-in already in progress ({self.phase.value})")
            return

        self._cancel_timers()
        self._generation += 1
        generation = self._generation
        self._counter.reset()
        self._checked_in = False
        self._analyzing = False

        self._set_state(
            phase=CheckInPhase.CAMERA_STARTING,
            guidance="",
            indicator=IndicatorColor.NEUTRAL,
            attempts_remaining=self._counter.detection_remaining,
            fallback_reason=None,
        )

        result = await self.camera.open()

        if generation != self._generation:
            # Screen was closed while the camera was starting. A newer
            # session that is already active owns the stream now.
            if self.phase.is_active:
                logger.info("Stale camera start finished, newer session keeps the camera")
            else:
                logger.info("Check-in closed during camera start, releasing camera")
                self.camera.close()
            return

        if not result.success:
            self._enter_fallback(self._camera_message(result.error))
            return

        self._set_state(
            phase=CheckInPhase.SCANNING,
            guidance=self.messages.place_face_in_oval,
        )
        self._sample_timer = self.scheduler.call_repeating(
            self.settings.sampler.interval_seconds,
            self.tick,
            initial_delay=self.settings.sampler.warmup_seconds,
        )

    async def retry(self) -> None:
        """Try the camera again after falling back to manual."""
        if self.phase != CheckInPhase.MANUAL_FALLBACK:
            logger.warning(f"Retry ignored in state {self.phase.value}")
            return
        logger.info("Retrying camera check-in")
        await self.start()

    async def confirm_manually(self) -> bool:
        """Check in with the one-tap confirmation.

        Succeeds unconditionally in MANUAL_FALLBACK without touching the
        camera or the detector.

        Returns:
            True if the check-in was accepted
        """
        if self.phase != CheckInPhase.MANUAL_FALLBACK:
            logger.warning(f"Manual check-in ignored in state {self.phase.value}")
            return False
        logger.info("Manual check-in confirmed")
        await self._succeed(release_camera=False)
        return True

    async def close(self) -> None:
        """Screen closed: stop everything and release the camera."""
        self._generation += 1
        self._analyzing = False
        self._cancel_timers()
        self.camera.close()
        if self.phase != CheckInPhase.IDLE:
            self._set_state(
                phase=CheckInPhase.IDLE,
                guidance="",
                indicator=IndicatorColor.NEUTRAL,
                fallback_reason=None,
            )

    # ==================== Sampling ====================

    async def tick(self) -> None:
        """Run one sampling cycle.

        Called by the repeating sample timer. Never raises: every failure
        inside the cycle is counted against the detection budget.
        """
        if self.phase != CheckInPhase.SCANNING or self._checked_in:
            return
        if self._analyzing:
            logger.debug("Previous sample still analysing, dropping tick")
            return

        self._analyzing = True
        generation = self._generation
        try:
            await self._sample_cycle(generation)
        except Exception as e:
            logger.error(f"Error in sampling cycle: {e}")
            if self._is_current(generation):
                self._record_detection_failure(self.messages.detection_failed)
        finally:
            if generation == self._generation:
                self._analyzing = False

    async def _sample_cycle(self, generation: int) -> None:
        """Capture, screen lighting, then ask the detector."""
        frame = await self.sampler.capture_still()
        if not self._is_current(generation):
            return
        if frame is None:
            return

        screen = self.heuristic.lighting_verdict(frame)
        if not screen.lighting_ok:
            self._record_lighting_failure(screen.is_too_dark)
            return

        self._set_state(guidance=self.messages.scanning)
        try:
            verdict = await self.detector.analyze(frame)
        except DetectionError as e:
            if self._is_current(generation):
                logger.warning(f"Face detection failed: {e}")
                self._record_detection_failure(self._detection_error_message(e))
            return

        if not self._is_current(generation):
            logger.debug("Discarding verdict for a finished session")
            return

        await self._apply_verdict(verdict)

    async def _apply_verdict(self, verdict: DetectionVerdict) -> None:
        """Apply the transition rules to a detector verdict."""
        if verdict.is_success(self._policy.success_confidence):
            logger.info(f"Face confirmed (confidence {verdict.confidence})")
            await self._succeed(release_camera=True)
            return

        if not verdict.face_detected:
            if not verdict.lighting_ok:
                self._record_lighting_failure(verdict.is_too_dark, verdict.guidance_text)
            else:
                self._record_detection_failure(
                    verdict.guidance_text or self.messages.face_not_detected
                )
            return

        # Face present but off-centre or low confidence: guidance only
        logger.debug(
            f"Face needs adjusting (in_oval={verdict.in_target_region}, "
            f"confidence={verdict.confidence})"
        )
        self._set_state(
            guidance=verdict.guidance_text or self.messages.place_face_in_oval,
            indicator=IndicatorColor.ADJUSTING,
        )

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self.phase == CheckInPhase.SCANNING

    # ==================== Failures ====================

    def _record_lighting_failure(self, too_dark: bool, guidance: str = "") -> None:
        message = guidance or (self.messages.too_dark if too_dark else self.messages.too_bright)
        exhausted = self._counter.record_lighting_failure()
        logger.warning(
            f"Lighting failure {self._counter.lighting_failures}/"
            f"{self._counter.max_lighting_failures}: {'dark' if too_dark else 'bright'}"
        )
        if exhausted:
            self._enter_fallback(message)
            return
        self._set_state(guidance=message, indicator=IndicatorColor.FAILURE)

    def _record_detection_failure(self, message: str) -> None:
        exhausted = self._counter.record_detection_failure()
        logger.warning(
            f"Detection failure {self._counter.detection_failures}/"
            f"{self._counter.max_detection_failures}: {message}"
        )
        if exhausted:
            self._enter_fallback(message)
            return
        self._set_state(
            guidance=message,
            indicator=IndicatorColor.FAILURE,
            attempts_remaining=self._counter.detection_remaining,
        )

    def _detection_error_message(self, error: DetectionError) -> str:
        if error.kind == DetectionErrorKind.RATE_LIMITED:
            return self.messages.rate_limited
        if error.kind == DetectionErrorKind.QUOTA_EXHAUSTED:
            return self.messages.quota_exhausted
        return self.messages.detection_failed

    def _camera_message(self, kind: Optional[CameraErrorKind]) -> str:
        if kind == CameraErrorKind.PERMISSION_DENIED:
            return self.messages.camera_permission_denied
        if kind == CameraErrorKind.DEVICE_NOT_FOUND:
            return self.messages.camera_not_found
        if kind == CameraErrorKind.DEVICE_BUSY:
            return self.messages.camera_busy
        return self.messages.camera_unknown

    def _enter_fallback(self, reason: str) -> None:
        """Stop the automated path and offer the manual confirmation."""
        self._cancel_timers()
        self.camera.close()
        logger.warning(f"Falling back to manual check-in: {reason}")
        self._set_state(
            phase=CheckInPhase.MANUAL_FALLBACK,
            guidance=reason,
            indicator=IndicatorColor.FAILURE,
            attempts_remaining=0,
            fallback_reason=reason,
        )

    # ==================== Success ====================

    async def _succeed(self, release_camera: bool) -> None:
        """Enter SUCCESS and emit the check-in exactly once."""
        if self._checked_in:
            logger.debug("Duplicate check-in suppressed")
            return
        self._checked_in = True

        self._cancel_timers()
        self._set_state(
            phase=CheckInPhase.SUCCESS,
            guidance=self.messages.face_detected,
            indicator=IndicatorColor.SUCCESS,
            fallback_reason=None,
        )

        if release_camera:
            # Keep the preview up briefly so the user sees the green oval
            self._release_timer = self.scheduler.call_later(
                self._policy.release_delay_seconds, self._release_camera
            )
        self._reset_timer = self.scheduler.call_later(
            self._policy.success_display_seconds, self._reset_to_idle
        )

        await self._emit_check_in()

    async def _emit_check_in(self) -> None:
        record = CheckInRecord(user_id=self.user_id)
        if self.telemetry is not None and self.settings.telemetry.share_battery:
            record = record.with_battery(self.telemetry.read())

        try:
            record.id = await self.record_sink.insert_check_in(record)
            logger.info(f"Check-in recorded for {self.user_id}")
        except Exception as e:
            logger.error(f"Failed to store check-in: {e}")

        for callback in self._check_in_listeners:
            try:
                callback(record)
            except Exception as e:
                logger.error(f"Check-in listener error: {e}")

    def _release_camera(self) -> None:
        self._release_timer = None
        self.camera.close()

    def _reset_to_idle(self) -> None:
        self._reset_timer = None
        if self.phase == CheckInPhase.SUCCESS:
            self._set_state(
                phase=CheckInPhase.IDLE,
                guidance="",
                indicator=IndicatorColor.NEUTRAL,
            )

    # ==================== Helpers ====================

    def _cancel_timers(self) -> None:
        for timer in (self._sample_timer, self._release_timer, self._reset_timer):
            if timer is not None:
                timer.cancel()
        self._sample_timer = None
        self._release_timer = None
        self._reset_timer = None

    def _set_state(self, **changes: Any) -> None:
        old_phase = self._state.phase
        self._state = self._state.evolve(**changes)

        if self._state.phase != old_phase:
            logger.info(f"State transition: {old_phase.value} -> {self._state.phase.value}")

        for callback in self._listeners:
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"State listener error: {e}")
