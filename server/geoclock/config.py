"""Server configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: GEOCLOCK_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from geoclock.core.acquisition import AcquisitionConfig


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    env: str = "dev"  # "dev" or "prod"


@dataclass
class AcquisitionSettings:
    enable_high_accuracy: bool = True
    timeout_ms: int = 15_000
    max_age_ms: int = 0
    use_multiple_readings: bool = True
    readings_count: int = 3
    # Uploaded samples are already spaced out by the device.
    reading_interval_ms: int = 0
    debounce_ms: int = 2_000
    watch_timeout_ms: int = 5_000

    def to_acquisition_config(self) -> AcquisitionConfig:
        return AcquisitionConfig(
            enable_high_accuracy=self.enable_high_accuracy,
            timeout_ms=self.timeout_ms,
            max_age_ms=self.max_age_ms,
            use_multiple_readings=self.use_multiple_readings,
            readings_count=self.readings_count,
            reading_interval_ms=self.reading_interval_ms,
            watch_timeout_ms=self.watch_timeout_ms,
        )


@dataclass
class GeofenceConfig:
    areas_file: str = "areas.yaml"
    admin_tolerance_m: float = 0.0
    max_acceptable_accuracy_m: float = 200.0
    enforce_for_modes: list[str] = field(default_factory=lambda: ["wfo"])


@dataclass
class QueueConfig:
    max_size: int = 10_000


@dataclass
class StorageConfig:
    base_dir: str = "data/decisions"


@dataclass
class LimitsConfig:
    max_samples_per_check: int = 20
    active_window_seconds: float = 120.0


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"
    file: str = ""


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    acquisition: AcquisitionSettings = field(default_factory=AcquisitionSettings)
    geofence: GeofenceConfig = field(default_factory=GeofenceConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_list(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    acq = config.acquisition
    mapping = {
        "GEOCLOCK_SERVER_HOST": lambda v: setattr(config.server, "host", v),
        "GEOCLOCK_SERVER_PORT": lambda v: setattr(config.server, "port", int(v)),
        "GEOCLOCK_SERVER_ENV": lambda v: setattr(config.server, "env", v),
        "GEOCLOCK_ACQUISITION_HIGH_ACCURACY": lambda v: setattr(acq, "enable_high_accuracy", _parse_bool(v)),
        "GEOCLOCK_ACQUISITION_TIMEOUT_MS": lambda v: setattr(acq, "timeout_ms", int(v)),
        "GEOCLOCK_ACQUISITION_MAX_AGE_MS": lambda v: setattr(acq, "max_age_ms", int(v)),
        "GEOCLOCK_ACQUISITION_MULTIPLE_READINGS": lambda v: setattr(acq, "use_multiple_readings", _parse_bool(v)),
        "GEOCLOCK_ACQUISITION_READINGS_COUNT": lambda v: setattr(acq, "readings_count", int(v)),
        "GEOCLOCK_ACQUISITION_READING_INTERVAL_MS": lambda v: setattr(acq, "reading_interval_ms", int(v)),
        "GEOCLOCK_ACQUISITION_DEBOUNCE_MS": lambda v: setattr(acq, "debounce_ms", int(v)),
        "GEOCLOCK_ACQUISITION_WATCH_TIMEOUT_MS": lambda v: setattr(acq, "watch_timeout_ms", int(v)),
        "GEOCLOCK_GEOFENCE_AREAS_FILE": lambda v: setattr(config.geofence, "areas_file", v),
        "GEOCLOCK_GEOFENCE_ADMIN_TOLERANCE_M": lambda v: setattr(config.geofence, "admin_tolerance_m", float(v)),
        "GEOCLOCK_GEOFENCE_MAX_ACCURACY_M": lambda v: setattr(config.geofence, "max_acceptable_accuracy_m", float(v)),
        "GEOCLOCK_GEOFENCE_ENFORCE_MODES": lambda v: setattr(config.geofence, "enforce_for_modes", _parse_list(v)),
        "GEOCLOCK_QUEUE_MAX_SIZE": lambda v: setattr(config.queue, "max_size", int(v)),
        "GEOCLOCK_STORAGE_BASE_DIR": lambda v: setattr(config.storage, "base_dir", v),
        "GEOCLOCK_LIMITS_MAX_SAMPLES": lambda v: setattr(config.limits, "max_samples_per_check", int(v)),
        "GEOCLOCK_LIMITS_ACTIVE_WINDOW": lambda v: setattr(config.limits, "active_window_seconds", float(v)),
        "GEOCLOCK_LOG_LEVEL": lambda v: setattr(config.logging, "level", v),
        "GEOCLOCK_LOG_FORMAT": lambda v: setattr(config.logging, "format", v),
        "GEOCLOCK_LOG_FILE": lambda v: setattr(config.logging, "file", v),
    }
    for env_key, setter in mapping.items():
        val = os.environ.get(env_key)
        if val is not None:
            setter(val)


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    # Try to load YAML
    if config_path is None:
        config_path = Path("config.yaml")
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section_name in ("server", "acquisition", "geofence", "queue",
                             "storage", "limits", "logging"):
            section = getattr(config, section_name)
            for k, v in (raw.get(section_name) or {}).items():
                if hasattr(section, k):
                    setattr(section, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    return config
