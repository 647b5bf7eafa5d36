# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Configuration management for SafeCheck.

Uses Pydantic Settings for environment variable and .env file support.
A YAML file can be layered on top with load_settings(); ${VAR} patterns
in it are substituted from the environment.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Default config file locations (in order of priority)
CONFIG_PATHS = [
    "safecheck.local.yaml",  # Local overrides (not in git)
    "safecheck.yaml",  # Default config
]


class CameraSettings(BaseSettings):
    """Camera acquisition settings."""

    model_config = SettingsConfigDict(env_prefix="SAFECHECK_CAMERA_")

    device_index: int = Field(
        default=0,
        description="OpenCV device index of the front-facing camera"
    )
    facing_mode: str = Field(
        default="user",
        description="Requested camera facing (user = front camera)"
    )
    width: int = Field(default=480, gt=0, description="Requested stream width")
    height: int = Field(default=640, gt=0, description="Requested stream height")
    first_frame_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long to wait for the first readable frame after opening"
    )


class SamplerSettings(BaseSettings):
    """Frame sampling settings."""

    model_config = SettingsConfigDict(env_prefix="SAFECHECK_SAMPLER_")

    remote_width: int = Field(default=320, gt=0)
    remote_height: int = Field(default=400, gt=0)
    local_width: int = Field(default=160, gt=0)
    local_height: int = Field(default=200, gt=0)
    warmup_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Delay after camera activation before the first sample"
    )
    interval_seconds: float = Field(
        default=4.0,
        gt=0,
        description="Seconds between samples"
    )
    jpeg_quality: int = Field(default=70, ge=1, le=100)
    mirror: bool = Field(
        default=True,
        description="Flip frames horizontally (selfie view)"
    )


class HeuristicSettings(BaseSettings):
    """Local pixel-statistics thresholds."""

    model_config = SettingsConfigDict(env_prefix="SAFECHECK_HEURISTIC_")

    dark_level: int = Field(
        default=40, ge=0, le=255,
        description="Pixel brightness below this counts as near-black"
    )
    bright_level: int = Field(
        default=215, ge=0, le=255,
        description="Pixel brightness above this counts as near-white"
    )
    lighting_fraction: float = Field(
        default=0.8, ge=0, le=1,
        description="Fraction of near-black/near-white pixels that fails lighting"
    )
    content_level: int = Field(
        default=30, ge=0, le=255,
        description="Any channel above this counts as non-background"
    )
    content_fraction: float = Field(default=0.4, ge=0, le=1)
    skin_fraction: float = Field(default=0.05, ge=0, le=1)
    center_fraction: float = Field(
        default=0.5, gt=0, le=1,
        description="Size of the analysed central region relative to the frame"
    )


class DetectorSettings(BaseSettings):
    """Face detection strategy settings."""

    model_config = SettingsConfigDict(env_prefix="SAFECHECK_DETECTOR_")

    strategy: Optional[str] = Field(
        default=None,
        description="remote or local; defaults to remote when url is set"
    )
    url: str = Field(
        default="",
        description="Face-analysis endpoint, e.g. http://localhost:8200/face-detect"
    )
    api_key: str = Field(default="", description="Bearer token for the endpoint")
    timeout_seconds: float = Field(default=15.0, gt=0)


class CheckInSettings(BaseSettings):
    """Check-in retry and timing policy."""

    model_config = SettingsConfigDict(env_prefix="SAFECHECK_CHECKIN_")

    max_lighting_failures: int = Field(default=2, ge=1)
    max_detection_failures: int = Field(default=2, ge=1)
    success_confidence: int = Field(
        default=60, ge=0, le=100,
        description="Minimum detector confidence for a successful check-in"
    )
    release_delay_seconds: float = Field(
        default=0.5, ge=0,
        description="Camera stays on this long after success so the user sees it"
    )
    success_display_seconds: float = Field(
        default=3.0, ge=0,
        description="How long the success confirmation shows before resetting"
    )


class LockdownSettings(BaseSettings):
    """Attention escalation while a check-in is due."""

    model_config = SettingsConfigDict(env_prefix="SAFECHECK_LOCKDOWN_")

    initial_pattern: List[int] = Field(default_factory=lambda: [300, 200, 300, 200, 500])
    repeat_pattern: List[int] = Field(default_factory=lambda: [200, 150, 200])
    repeat_interval_seconds: float = Field(default=8.0, gt=0)
    fullscreen_retry_seconds: float = Field(default=0.5, ge=0)


class TelemetrySettings(BaseSettings):
    """Opt-in device telemetry."""

    model_config = SettingsConfigDict(env_prefix="SAFECHECK_TELEMETRY_")

    share_battery: bool = Field(
        default=False,
        description="Attach battery level and charging state to check-ins"
    )


class MessagesSettings(BaseSettings):
    """User-facing guidance text."""

    model_config = SettingsConfigDict(env_prefix="SAFECHECK_MESSAGES_")

    place_face_in_oval: str = "Position your face within the oval"
    scanning: str = "Scanning..."
    face_detected: str = "Face detected! Checking in..."
    face_not_detected: str = "Face not detected. Please try again."
    too_dark: str = "Too dark, find better lighting"
    too_bright: str = "Too bright, reduce lighting"
    detection_failed: str = "Detection failed, try again"
    rate_limited: str = "Too many requests, please wait a moment"
    quota_exhausted: str = "Face check is unavailable right now"
    manual_prompt: str = "Check In Manually"
    camera_permission_denied: str = "Camera access was denied"
    camera_not_found: str = "No camera was found"
    camera_busy: str = "The camera is in use by another app"
    camera_unknown: str = "The camera could not be started"


class DatabaseSettings(BaseSettings):
    """Check-in record storage."""

    model_config = SettingsConfigDict(env_prefix="SAFECHECK_DATABASE_")

    path: str = Field(default="data/safecheck.db")
    retention_days: int = Field(default=365, ge=1)


class ServerSettings(BaseSettings):
    """Face-analysis service settings."""

    model_config = SettingsConfigDict(env_prefix="SAFECHECK_SERVER_")

    host: str = Field(default="0.0.0.0", description="Host to bind to")
    port: int = Field(default=8200, description="Port to listen on")
    log_level: str = Field(default="INFO", description="Logging level")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="SAFECHECK_LOGGING_")

    level: str = "INFO"
    file: str = "logs/safecheck.log"
    max_size_mb: int = 10
    backup_count: int = 5


class Settings(BaseSettings):
    """Root settings for SafeCheck.

    Settings are loaded from environment variables with SAFECHECK_ prefix,
    or from a .env file in the working directory.

    Example environment variables:
        SAFECHECK_DETECTOR__URL=http://192.168.1.20:8200/face-detect
        SAFECHECK_CHECKIN__MAX_DETECTION_FAILURES=3
        SAFECHECK_TELEMETRY__SHARE_BATTERY=true
    """

    model_config = SettingsConfigDict(
        env_prefix="SAFECHECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    mock_mode: bool = False

    # Nested settings
    camera: CameraSettings = Field(default_factory=CameraSettings)
    sampler: SamplerSettings = Field(default_factory=SamplerSettings)
    heuristic: HeuristicSettings = Field(default_factory=HeuristicSettings)
    detector: DetectorSettings = Field(default_factory=DetectorSettings)
    checkin: CheckInSettings = Field(default_factory=CheckInSettings)
    lockdown: LockdownSettings = Field(default_factory=LockdownSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)
    messages: MessagesSettings = Field(default_factory=MessagesSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def ensure_directories(self) -> None:
        """Create directories for the database and log file."""
        for path in (self.database.path, self.logging.file):
            directory = Path(path).parent
            if str(directory) not in ("", "."):
                directory.mkdir(parents=True, exist_ok=True)


def _substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR} patterns with environment variables.

    Args:
        value: Value to process (can be str, dict, list, or other)

    Returns:
        Value with environment variables substituted
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}]+)\}'

        def replace_env(match):
            var_name = match.group(1)
            env_value = os.environ.get(var_name, "")
            if not env_value:
                logger.warning(f"Environment variable {var_name} not set")
            return env_value

        return re.sub(pattern, replace_env, value)

    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]

    return value


def load_settings(
    config_path: Optional[str] = None,
    base_path: Optional[Path] = None,
) -> Settings:
    """Load settings from a YAML file layered over the environment.

    Values in the YAML file take precedence over environment variables.
    Without an explicit path the default locations are searched; if none
    exists, settings come from the environment alone.

    Args:
        config_path: Path to config file. If None, searches default locations.
        base_path: Base path for .env and default config lookup. Defaults to cwd.

    Returns:
        Validated Settings

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
        yaml.YAMLError: If the config file is invalid YAML
        pydantic.ValidationError: If a value is out of range
    """
    base = Path(base_path or Path.cwd())

    # Load .env file if present
    env_path = base / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        logger.debug(f"Loaded environment from {env_path}")

    config_file: Optional[Path] = None
    if config_path:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for path in CONFIG_PATHS:
            candidate = base / path
            if candidate.exists():
                config_file = candidate
                break

    config_data: dict = {}
    if config_file is None:
        logger.info("No config file found, using environment and defaults")
    else:
        logger.info(f"Loading config from {config_file}")
        with open(config_file, 'r') as f:
            raw_config = yaml.safe_load(f) or {}
        config_data = _substitute_env_vars(raw_config)

    # Check for MOCK_HARDWARE env var override
    if os.environ.get("MOCK_HARDWARE", "").lower() in ("true", "1", "yes"):
        config_data["mock_mode"] = True

    return Settings(**config_data)


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
