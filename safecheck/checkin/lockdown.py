# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Attention escalation while a check-in is due ("lockdown").

While active, the escalator keeps the prompt in front of the user:
immersive presentation, a vibration pattern on activation followed by a
shorter repeating one, and a guard against accidentally leaving. It is
driven by an external on/off signal and knows nothing about detection.

Every platform effect is optional. A platform that lacks a capability
reports it through its supports_* flags and the effect is skipped.
"""

import logging
import signal
import sys
from typing import Callable, List, Optional, TextIO

from safecheck.checkin.scheduler import AsyncioScheduler, Scheduler, TimerHandle
from safecheck.config import LockdownSettings

logger = logging.getLogger(__name__)


class Platform:
    """Capabilities the escalator drives. The base class supports nothing."""

    supports_vibration = False
    supports_fullscreen = False
    supports_leave_guard = False

    def vibrate(self, pattern: List[int]) -> None:
        """Play a vibration pattern (alternating on/off milliseconds)."""

    def cancel_vibration(self) -> None:
        """Stop any vibration in progress."""

    def request_fullscreen(self) -> None:
        pass

    def exit_fullscreen(self) -> None:
        pass

    def is_fullscreen(self) -> bool:
        return False

    def add_leave_guard(self) -> None:
        """Start intercepting attempts to leave the app."""

    def remove_leave_guard(self) -> None:
        pass


class TerminalPlatform(Platform):
    """Console rendition of the escalator capabilities.

    The terminal bell stands in for vibration and full-screen is not
    available. The leave guard swallows the first Ctrl+C and warns; a
    second Ctrl+C goes through to the previous handler.
    """

    supports_vibration = True
    supports_leave_guard = True

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout
        self._previous_handler = None
        self._guarded = False
        self._interrupts = 0

    def vibrate(self, pattern: List[int]) -> None:
        self.stream.write("\a")
        self.stream.flush()

    def add_leave_guard(self) -> None:
        if self._guarded:
            return
        self._interrupts = 0
        try:
            self._previous_handler = signal.signal(signal.SIGINT, self._on_interrupt)
        except ValueError as e:
            # Not on the main thread
            logger.debug(f"Leave guard unavailable: {e}")
            return
        self._guarded = True

    def remove_leave_guard(self) -> None:
        if not self._guarded:
            return
        self._guarded = False
        try:
            previous = self._previous_handler
            signal.signal(signal.SIGINT, previous if previous is not None else signal.default_int_handler)
        except ValueError as e:
            logger.debug(f"Could not restore SIGINT handler: {e}")
        self._previous_handler = None

    def _on_interrupt(self, signum, frame):
        self._interrupts += 1
        if self._interrupts == 1:
            self.stream.write("\nA check-in is due. Press Ctrl+C again to leave.\n")
            self.stream.flush()
            return
        previous = self._previous_handler
        if callable(previous):
            previous(signum, frame)
        else:
            raise KeyboardInterrupt


class AttentionEscalator:
    """Fullscreen, haptics and a leave guard for an outstanding check-in.

    Usage:
        escalator = AttentionEscalator(platform, scheduler, settings.lockdown)
        escalator.set_active(True)   # check-in became due
        ...
        escalator.set_active(False)  # checked in
        escalator.dispose()
    """

    def __init__(self, platform: Platform, scheduler: Optional[Scheduler] = None, settings=None):
        """Initialize escalator.

        Args:
            platform: Capability provider
            scheduler: Timer source (AsyncioScheduler if not provided)
            settings: LockdownSettings (defaults if not provided)
        """
        self.platform = platform
        self.scheduler = scheduler or AsyncioScheduler()
        self.settings = settings or LockdownSettings()

        self._active = False
        self._repeat_timer: Optional[TimerHandle] = None
        self._fullscreen_timer: Optional[TimerHandle] = None

    @property
    def is_active(self) -> bool:
        return self._active

    def set_active(self, active: bool) -> None:
        """Follow the external "check-in due" signal."""
        if active == self._active:
            return
        if active:
            self._activate()
        else:
            self._deactivate()

    def on_fullscreen_exited(self) -> None:
        """Platform reports immersive mode was left.

        Re-requests it after a short debounce while still active, so the
        escalator does not fight the platform's own UI.
        """
        if not self._active or not self.platform.supports_fullscreen:
            return
        self._cancel(self._fullscreen_timer)
        self._fullscreen_timer = self.scheduler.call_later(
            self.settings.fullscreen_retry_seconds, self._request_fullscreen_again
        )

    def dispose(self) -> None:
        """Tear down on component disposal."""
        self._deactivate()

    def _activate(self) -> None:
        logger.info("Lockdown activated")
        self._active = True

        if self.platform.supports_fullscreen:
            self._effect("request_fullscreen", self.platform.request_fullscreen)
        if self.platform.supports_vibration:
            self._effect("vibrate", self.platform.vibrate, list(self.settings.initial_pattern))
        if self.platform.supports_leave_guard:
            self._effect("add_leave_guard", self.platform.add_leave_guard)

        self._repeat_timer = self.scheduler.call_repeating(
            self.settings.repeat_interval_seconds, self._pulse
        )

    def _deactivate(self) -> None:
        self._cancel(self._repeat_timer)
        self._cancel(self._fullscreen_timer)
        self._repeat_timer = None
        self._fullscreen_timer = None

        if not self._active:
            return
        self._active = False
        logger.info("Lockdown deactivated")

        if self.platform.supports_vibration:
            self._effect("cancel_vibration", self.platform.cancel_vibration)
        if self.platform.supports_fullscreen and self.platform.is_fullscreen():
            self._effect("exit_fullscreen", self.platform.exit_fullscreen)
        if self.platform.supports_leave_guard:
            self._effect("remove_leave_guard", self.platform.remove_leave_guard)

    def _pulse(self) -> None:
        if self._active and self.platform.supports_vibration:
            self._effect("vibrate", self.platform.vibrate, list(self.settings.repeat_pattern))

    def _request_fullscreen_again(self) -> None:
        self._fullscreen_timer = None
        if self._active and not self.platform.is_fullscreen():
            logger.debug("Re-requesting fullscreen")
            self._effect("request_fullscreen", self.platform.request_fullscreen)

    @staticmethod
    def _cancel(timer: Optional[TimerHandle]) -> None:
        if timer is not None:
            timer.cancel()

    @staticmethod
    def _effect(name: str, func: Callable, *args) -> None:
        try:
            func(*args)
        except Exception as e:
            logger.debug(f"Platform effect {name} failed: {e}")
