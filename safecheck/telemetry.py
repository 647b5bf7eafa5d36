# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Device battery telemetry for check-in records.

Attached to a check-in only when the user has opted in. Devices without
a battery (or platforms psutil cannot query) simply report nothing.
"""

import logging
from typing import Optional

import psutil

from safecheck.models.checkin import BatteryStatus

logger = logging.getLogger(__name__)


class BatteryTelemetry:
    """Reads battery level and charging state through psutil."""

    def read(self) -> Optional[BatteryStatus]:
        """Current battery status.

        Returns:
            BatteryStatus, or None if no battery information is available
        """
        sensors_battery = getattr(psutil, "sensors_battery", None)
        if sensors_battery is None:
            return None

        try:
            battery = sensors_battery()
        except (OSError, RuntimeError) as e:
            logger.debug(f"Battery query failed: {e}")
            return None

        if battery is None:
            return None

        level = max(0, min(100, int(round(battery.percent))))
        is_charging = bool(battery.power_plugged)
        return BatteryStatus(level=level, is_charging=is_charging)
