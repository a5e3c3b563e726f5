"""
Planner settings loaded from YAML with environment overrides.

Example file::

    planner:
      kernel_dir: ~/.neo_planner/ephemeris
      horizon_hours: 24
      step_minutes: 30
      min_altitude_deg: 20
      twilight_limit_deg: -12
      max_targets: 10
      tai_minus_utc_seconds: 37
      max_workers: 4

Environment variables win over the file:
    NEO_PLANNER_KERNEL_DIR, NEO_PLANNER_NEOWS_API_KEY (or NASA_API_KEY),
    NEO_PLANNER_TAI_MINUS_UTC
"""

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml  # type: ignore[import-untyped]

from .constants import DEFAULT_TAI_MINUS_UTC_SECONDS
from .planner import (
    DEFAULT_HORIZON_HOURS,
    DEFAULT_MAX_TARGETS,
    VisibilityRequest,
)
from .timescales import TimeScaleConfig
from .visibility import (
    DEFAULT_MIN_ALTITUDE_DEG,
    DEFAULT_STEP_MINUTES,
    DEFAULT_TWILIGHT_LIMIT_DEG,
)

logger = logging.getLogger(__name__)

DEFAULT_KERNEL_DIR = Path.home() / ".neo_planner" / "ephemeris"

ENV_KERNEL_DIR = "NEO_PLANNER_KERNEL_DIR"
ENV_API_KEY = "NEO_PLANNER_NEOWS_API_KEY"
ENV_API_KEY_FALLBACK = "NASA_API_KEY"
ENV_TAI_MINUS_UTC = "NEO_PLANNER_TAI_MINUS_UTC"


@dataclass
class PlannerSettings:
    """Defaults for planning runs and collaborator settings."""

    kernel_dir: Path = DEFAULT_KERNEL_DIR
    neows_api_key: Optional[str] = None
    horizon_hours: float = DEFAULT_HORIZON_HOURS
    step_minutes: int = DEFAULT_STEP_MINUTES
    min_altitude_deg: float = DEFAULT_MIN_ALTITUDE_DEG
    twilight_limit_deg: float = DEFAULT_TWILIGHT_LIMIT_DEG
    max_targets: int = DEFAULT_MAX_TARGETS
    tai_minus_utc_seconds: float = DEFAULT_TAI_MINUS_UTC_SECONDS
    max_workers: Optional[int] = None

    def __post_init__(self) -> None:
        self.kernel_dir = Path(self.kernel_dir).expanduser()

    def visibility_request(self, **overrides: Any) -> VisibilityRequest:
        """
        Build a VisibilityRequest from these settings.

        Keyword overrides that are None are ignored, so CLI options can be
        passed straight through.
        """
        values = {
            "horizon_hours": self.horizon_hours,
            "step_minutes": self.step_minutes,
            "min_altitude_deg": self.min_altitude_deg,
            "twilight_limit_deg": self.twilight_limit_deg,
            "max_targets": self.max_targets,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return VisibilityRequest(**values)

    def time_scales(self) -> TimeScaleConfig:
        return TimeScaleConfig(tai_minus_utc_seconds=self.tai_minus_utc_seconds)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kernel_dir"] = str(self.kernel_dir)
        data.pop("neows_api_key")
        return data


def _settings_from_mapping(data: Dict[str, Any]) -> PlannerSettings:
    known = {f.name for f in fields(PlannerSettings)}
    filtered = {}
    for key, value in data.items():
        if key in known:
            filtered[key] = value
        else:
            logger.warning(f"Ignoring unknown planner setting: {key}")
    return PlannerSettings(**filtered)


def load_settings(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> PlannerSettings:
    """
    Load settings from an optional YAML file, then apply environment overrides.

    Args:
        path: YAML file; a missing file is an error, None means defaults only
        environ: Environment mapping (defaults to os.environ)

    Returns:
        PlannerSettings

    Raises:
        FileNotFoundError: If ``path`` is given and does not exist
        ValueError: If the file or an override is malformed
    """
    env = os.environ if environ is None else environ
    data: Dict[str, Any] = {}

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        with open(config_path, "r") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        section = raw.get("planner", raw)
        if not isinstance(section, dict):
            raise ValueError(f"'planner' section in {config_path} must be a mapping")
        data.update(section)
        logger.info(f"Loaded planner settings from {config_path}")

    if env.get(ENV_KERNEL_DIR):
        data["kernel_dir"] = env[ENV_KERNEL_DIR]

    api_key = env.get(ENV_API_KEY) or env.get(ENV_API_KEY_FALLBACK)
    if api_key:
        data["neows_api_key"] = api_key

    if env.get(ENV_TAI_MINUS_UTC):
        try:
            data["tai_minus_utc_seconds"] = float(env[ENV_TAI_MINUS_UTC])
        except ValueError as e:
            raise ValueError(
                f"{ENV_TAI_MINUS_UTC} must be a number, got {env[ENV_TAI_MINUS_UTC]!r}"
            ) from e

    return _settings_from_mapping(data)
