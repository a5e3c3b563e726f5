"""
Observer and NEO target definitions and management.

This module provides the ground observer and the small-body targets fed to
the visibility planner, plus a small manager for loading and saving target
lists as JSON.
"""

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, Dict, Iterator, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import json
import logging

from .orbit import OrbitElements

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Observer:
    """
    Ground observer on the WGS-84 ellipsoid.

    Longitude is east-positive. The time zone is only used to present
    results in local time.
    """

    latitude_deg: float
    longitude_deg: float
    elevation_m: float = 0.0
    time_zone_id: str = "UTC"

    def __post_init__(self) -> None:
        """Validate coordinates and time zone after initialization."""
        if not -90 <= self.latitude_deg <= 90:
            raise ValueError(
                f"Invalid latitude: {self.latitude_deg}. Must be between -90 and 90 degrees."
            )
        if not -180 <= self.longitude_deg <= 180:
            raise ValueError(
                f"Invalid longitude: {self.longitude_deg}. Must be between -180 and 180 degrees."
            )
        try:
            ZoneInfo(self.time_zone_id)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: {self.time_zone_id!r}") from e

    @property
    def zone(self) -> tzinfo:
        return ZoneInfo(self.time_zone_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latitude_deg": self.latitude_deg,
            "longitude_deg": self.longitude_deg,
            "elevation_m": self.elevation_m,
            "time_zone_id": self.time_zone_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Observer":
        return cls(**data)

    def __str__(self) -> str:
        return (f"Observer ({self.latitude_deg:.4f}°, {self.longitude_deg:.4f}°, "
                f"{self.elevation_m:.0f} m, {self.time_zone_id})")


@dataclass(frozen=True)
class NeoTarget:
    """
    A near-Earth object with its osculating elements.

    Close-approach fields are informational and come from the catalog feed.
    """

    id: str
    name: str
    elements: OrbitElements
    h_magnitude: Optional[float] = None
    is_hazardous: bool = False
    closest_approach_au: Optional[float] = None
    closest_approach_utc: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert target to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "h_magnitude": self.h_magnitude,
            "is_hazardous": self.is_hazardous,
            "closest_approach_au": self.closest_approach_au,
            "closest_approach_utc": (
                self.closest_approach_utc.isoformat() if self.closest_approach_utc else None
            ),
            "elements": self.elements.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NeoTarget":
        """Create NeoTarget from dictionary."""
        approach = data.get("closest_approach_utc")
        h_mag = data.get("h_magnitude")
        approach_au = data.get("closest_approach_au")
        return cls(
            id=str(data["id"]),
            name=data.get("name", str(data["id"])),
            elements=OrbitElements.from_dict(data["elements"]),
            h_magnitude=float(h_mag) if h_mag is not None else None,
            is_hazardous=bool(data.get("is_hazardous", False)),
            closest_approach_au=float(approach_au) if approach_au is not None else None,
            closest_approach_utc=datetime.fromisoformat(approach) if approach else None,
        )

    def __str__(self) -> str:
        flag = " [PHA]" if self.is_hazardous else ""
        return f"{self.name} ({self.id}){flag}"


class TargetManager:
    """
    Manages an ordered collection of NEO targets.

    Order matters: the planner takes the first ``max_targets`` entries.
    """

    def __init__(self, targets: Optional[List[NeoTarget]] = None) -> None:
        self.targets: List[NeoTarget] = list(targets or [])
        logger.info(f"Initialized TargetManager with {len(self.targets)} targets")

    def add_target(self, target: NeoTarget) -> None:
        """
        Add a target to the collection.

        Raises:
            TypeError: If ``target`` is not a NeoTarget
        """
        if not isinstance(target, NeoTarget):
            raise TypeError("Target must be a NeoTarget instance")

        if self.get_target(target.id) is not None:
            logger.warning(f"Target with id '{target.id}' already exists. Adding anyway.")

        self.targets.append(target)
        logger.debug(f"Added target: {target}")

    def remove_target(self, target_id: str) -> bool:
        """Remove a target by id; False if it was not present."""
        for i, target in enumerate(self.targets):
            if target.id == target_id:
                removed = self.targets.pop(i)
                logger.info(f"Removed target: {removed}")
                return True

        logger.warning(f"Target '{target_id}' not found for removal")
        return False

    def get_target(self, target_id: str) -> Optional[NeoTarget]:
        for target in self.targets:
            if target.id == target_id:
                return target
        return None

    def hazardous(self) -> List[NeoTarget]:
        return [t for t in self.targets if t.is_hazardous]

    def save_to_file(self, file_path: str) -> None:
        """
        Save targets to a JSON file.

        Args:
            file_path: Path to save file
        """
        try:
            targets_data = [target.to_dict() for target in self.targets]

            with open(file_path, 'w') as f:
                json.dump({
                    "targets": targets_data,
                    "count": len(targets_data)
                }, f, indent=2)

            logger.info(f"Saved {len(self.targets)} targets to {file_path}")

        except Exception as e:
            logger.error(f"Error saving targets to {file_path}: {e}")
            raise

    @classmethod
    def load_from_file(cls, file_path: str) -> "TargetManager":
        """
        Load targets from a JSON file written by :meth:`save_to_file`.

        Args:
            file_path: Path to load file

        Returns:
            TargetManager instance with loaded targets
        """
        try:
            with open(file_path, 'r') as f:
                data = json.load(f)

            targets = [NeoTarget.from_dict(target_data)
                       for target_data in data.get("targets", [])]

            logger.info(f"Loaded {len(targets)} targets from {file_path}")
            return cls(targets)

        except Exception as e:
            logger.error(f"Error loading targets from {file_path}: {e}")
            raise

    def __len__(self) -> int:
        return len(self.targets)

    def __iter__(self) -> Iterator[NeoTarget]:
        return iter(self.targets)

    def __repr__(self) -> str:
        return f"TargetManager({len(self.targets)} targets)"
