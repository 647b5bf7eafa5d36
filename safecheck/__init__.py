# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""SafeCheck - face-presence check-in for people living alone.

An elder confirms they are safe by showing their face to the camera (or,
when that fails, with a single tap); caregivers watch the resulting
check-in records.
"""

__version__ = "0.1.0"
