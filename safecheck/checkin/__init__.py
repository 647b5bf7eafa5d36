# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Check-in orchestration: state machine, lockdown and timers."""

from safecheck.checkin.lockdown import AttentionEscalator, Platform, TerminalPlatform
from safecheck.checkin.scheduler import (
    AsyncioScheduler,
    ManualScheduler,
    Scheduler,
    TimerHandle,
)
from safecheck.checkin.state_machine import CheckInStateMachine

__all__ = [
    "AsyncioScheduler",
    "AttentionEscalator",
    "CheckInStateMachine",
    "ManualScheduler",
    "Platform",
    "Scheduler",
    "TerminalPlatform",
    "TimerHandle",
]
