"""
Receipt Scanner Configuration
=============================

This module handles configuration loading for the scanning service.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    SCANNER_TICK_INTERVAL_MS   -> session.tick_interval_ms
    SCANNER_ERROR_HOLD_MS      -> session.error_hold_ms
    SCANNER_PERSISTENCE_MS     -> motion_warnings.persistence_ms
    SCANNER_SIMULATION         -> simulation.enabled
    SCANNER_SCENARIO           -> simulation.scenario
    SCANNER_SEED               -> simulation.seed
    SCANNER_FORCED_ERROR       -> simulation.forced_error
    SCANNER_FRAME_STREAM_URL   -> sources.frame_stream_url
    SCANNER_CAMERA_GRANTED     -> permissions.camera_granted
    SCANNER_PORT               -> server.port
    SCANNER_LOG_LEVEL          -> logging.level
    PORT                       -> server.port (Cloud Run)

Example:
    from receipt_scanner.config import settings

    print(settings.session.tick_interval_ms)
    print(settings.rules.max_glare)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from receipt_scanner.models.error_codes import ErrorCode
from receipt_scanner.signals.simulation import ScannerSimulationScenario


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="receipt-scanner", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class SessionConfig(BaseModel):
    """Session driver timing."""

    tick_interval_ms: float = Field(
        default=160.0,
        gt=0,
        description="Period of the scanning tick in milliseconds",
    )
    error_hold_ms: float = Field(
        default=2000.0,
        ge=0,
        description="Time a fault must go undetected before it clears",
    )
    progress_step_min: float = Field(
        default=0.85,
        ge=0,
        description="Lower bound (inclusive) of a progress increment",
    )
    progress_step_max: float = Field(
        default=2.75,
        gt=0,
        description="Upper bound (exclusive) of a progress increment",
    )


class MotionWarningConfig(BaseModel):
    """Debounced motion warning thresholds."""

    persistence_ms: float = Field(
        default=400.0,
        ge=0,
        description="Continuous time a motion condition must hold",
    )
    too_fast_speed: float = Field(default=1.35, ge=0, description="TOO_FAST speed")
    drifting_rotation: float = Field(default=0.18, ge=0, description="DRIFTING |rotation|")


class RuleThresholdsConfig(BaseModel):
    """Fault rule thresholds."""

    min_bounds_confidence: float = Field(default=0.45, ge=0, le=1.0)
    max_vertical_speed: float = Field(default=1.35, ge=0)
    min_stability: float = Field(default=0.45, ge=0, le=1.0)
    min_brightness: float = Field(default=0.22, ge=0, le=1.0)
    max_glare: float = Field(default=0.78, ge=0, le=1.0)


class SimulationConfig(BaseModel):
    """Demo-mode signal simulation."""

    enabled: bool = Field(
        default=True,
        description="Simulate signals when no camera frames arrive",
    )
    scenario: ScannerSimulationScenario = Field(
        default=ScannerSimulationScenario.NO_ERRORS,
        description="NO_ERRORS or MOCK_ERRORS",
    )
    error_probability: float = Field(
        default=0.055,
        ge=0,
        le=1.0,
        description="Per-tick fault injection probability (MOCK_ERRORS)",
    )
    seed: Optional[int] = Field(
        default=None,
        description="Seed for reproducible simulation (None = random)",
    )
    forced_error: Optional[ErrorCode] = Field(
        default=None,
        description="Fault the simulator reproduces (None = scenario decides)",
    )
    forced_error_min_progress: Optional[float] = Field(
        default=None,
        ge=0,
        le=100,
        description="Forced fault applies only above this progress (exclusive)",
    )
    forced_error_max_progress: Optional[float] = Field(
        default=None,
        ge=0,
        le=100,
        description="Forced fault applies only below this progress (exclusive)",
    )

    @property
    def forced_error_window(self) -> Optional[tuple]:
        """Progress window for forced_error, or None when unbounded."""
        if self.forced_error_min_progress is None and self.forced_error_max_progress is None:
            return None
        low = self.forced_error_min_progress
        high = self.forced_error_max_progress
        return (
            0.0 if low is None else low,
            100.0 if high is None else high,
        )


class SourcesConfig(BaseModel):
    """Raw signal source configuration."""

    frame_stream_url: Optional[str] = Field(
        default=None,
        description="WebSocket URL of a frame analyzer (None = no stream)",
    )
    reconnect_backoff_ms: int = Field(
        default=500,
        ge=100,
        description="Backoff in milliseconds between reconnect attempts",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum reconnection attempts (0 = unlimited)",
    )


class PermissionConfig(BaseModel):
    """Camera permission answer for headless deployments."""

    camera_granted: bool = Field(default=True, description="Grant camera access")


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")
    ui_push_interval_sec: float = Field(
        default=0.25,
        gt=0,
        description="Interval between UI model pushes on /ws/ui",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the receipt scanner.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    motion_warnings: MotionWarningConfig = Field(default_factory=MotionWarningConfig)
    rules: RuleThresholdsConfig = Field(default_factory=RuleThresholdsConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    permissions: PermissionConfig = Field(default_factory=PermissionConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Session timing
    if env_tick := os.environ.get("SCANNER_TICK_INTERVAL_MS"):
        config_data.setdefault("session", {})["tick_interval_ms"] = float(env_tick)
    if env_hold := os.environ.get("SCANNER_ERROR_HOLD_MS"):
        config_data.setdefault("session", {})["error_hold_ms"] = float(env_hold)
    if env_persist := os.environ.get("SCANNER_PERSISTENCE_MS"):
        config_data.setdefault("motion_warnings", {})["persistence_ms"] = float(env_persist)

    # Simulation
    if env_sim := os.environ.get("SCANNER_SIMULATION"):
        config_data.setdefault("simulation", {})["enabled"] = _parse_bool(env_sim)
    if env_scenario := os.environ.get("SCANNER_SCENARIO"):
        config_data.setdefault("simulation", {})["scenario"] = env_scenario.upper()
    if env_seed := os.environ.get("SCANNER_SEED"):
        config_data.setdefault("simulation", {})["seed"] = int(env_seed)
    if env_forced := os.environ.get("SCANNER_FORCED_ERROR"):
        config_data.setdefault("simulation", {})["forced_error"] = env_forced.upper()

    # Sources
    if env_url := os.environ.get("SCANNER_FRAME_STREAM_URL"):
        config_data.setdefault("sources", {})["frame_stream_url"] = env_url

    # Permissions
    if env_granted := os.environ.get("SCANNER_CAMERA_GRANTED"):
        config_data.setdefault("permissions", {})["camera_granted"] = _parse_bool(env_granted)

    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("SCANNER_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("SCANNER_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
