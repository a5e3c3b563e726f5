"""
Human-oriented pointing: compass direction and a short aiming hint.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from .angles import normalize_deg_0_to_360
from .frames import AltAz, RaDec, altaz_from_geocentric, radec_from_eci
from .targets import Observer
from .vector import Vector3

CARDINALS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")


@dataclass(frozen=True)
class TopocentricResult:
    """Where a body is in the observer's sky at one instant."""

    altaz: AltAz
    radec: RaDec
    cardinal: str
    hint: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.altaz.to_dict(),
            **self.radec.to_dict(),
            "cardinal": self.cardinal,
            "hint": self.hint,
        }


def cardinal_from_azimuth(azimuth_deg: float) -> str:
    """
    Nearest of the eight compass points.

    Each point owns a 45° sector centred on it; a boundary (e.g. 22.5°)
    belongs to the next point clockwise.
    """
    az = normalize_deg_0_to_360(azimuth_deg)
    index = int(math.floor(az / 45.0 + 0.5)) % 8
    return CARDINALS[index]


def pointing_hint(altitude_deg: float, azimuth_deg: float) -> str:
    """
    One-line aiming instruction.

    Args:
        altitude_deg: Altitude, clamped to [-90, 90] for display
        azimuth_deg: Azimuth from North through East

    Returns:
        Hint text with the altitude to one decimal place
    """
    cardinal = cardinal_from_azimuth(azimuth_deg)
    altitude = max(-90.0, min(90.0, altitude_deg))
    if altitude <= 0.0:
        return f"Object is below the horizon (face {cardinal}, altitude {altitude:.1f}°)."
    return f"Face {cardinal}, tilt up to ~{altitude:.1f}°."


def solve_topocentric(geocentric: Vector3, when: datetime, observer: Observer) -> TopocentricResult:
    """
    Alt/az, RA/Dec, compass point and hint for a geocentric inertial vector.

    Args:
        geocentric: Earth-centred inertial vector (km)
        when: UTC instant
        observer: Ground observer

    Returns:
        TopocentricResult
    """
    altaz = altaz_from_geocentric(geocentric, when, observer)
    return TopocentricResult(
        altaz=altaz,
        radec=radec_from_eci(geocentric),
        cardinal=cardinal_from_azimuth(altaz.azimuth_deg),
        hint=pointing_hint(altaz.altitude_deg, altaz.azimuth_deg),
    )
