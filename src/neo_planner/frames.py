"""
Coordinate frame conversions from inertial vectors to the observer's sky.

Pipeline for a geocentric inertial vector:
    ECI --(Z rotation by GMST)--> ECEF
    minus observer ECEF (WGS-84)  --> line of sight
    project onto local East/North/Up --> altitude, azimuth

Azimuth is measured from North through East. Precession, nutation, polar
motion, aberration and refraction are ignored.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Tuple

import numpy as np

from .angles import normalize_deg_0_to_360, normalize_rad_0_to_2pi
from .constants import WGS84_A_M, WGS84_E2
from .targets import Observer
from .timescales import gmst_rad, jd_utc
from .vector import Vector3


@dataclass(frozen=True)
class AltAz:
    """Horizontal coordinates in degrees."""

    altitude_deg: float
    azimuth_deg: float

    def to_dict(self) -> Dict[str, Any]:
        return {"altitude_deg": self.altitude_deg, "azimuth_deg": self.azimuth_deg}


@dataclass(frozen=True)
class RaDec:
    """Equatorial coordinates in degrees."""

    ra_deg: float
    dec_deg: float

    def to_dict(self) -> Dict[str, Any]:
        return {"ra_deg": self.ra_deg, "dec_deg": self.dec_deg}


def rotation_z(theta: float) -> np.ndarray:
    """Frame rotation about Z by ``theta`` radians."""
    c, s = math.cos(theta), math.sin(theta)
    return np.array([[c, s, 0.0], [-s, c, 0.0], [0.0, 0.0, 1.0]])


def eci_to_ecef(eci: Vector3, when: datetime) -> Vector3:
    """
    Rotate an inertial vector into the Earth-fixed frame.

    Args:
        eci: Inertial vector (km)
        when: UTC instant; GMST is evaluated at JD(UTC)

    Returns:
        Earth-fixed vector (km)
    """
    theta = gmst_rad(jd_utc(when))
    return Vector3.from_array(rotation_z(theta) @ eci.to_array())


def geodetic_to_ecef(latitude_deg: float, longitude_deg: float, height_m: float) -> Vector3:
    """
    WGS-84 geodetic coordinates to ECEF.

    Args:
        latitude_deg: Geodetic latitude
        longitude_deg: East-positive longitude
        height_m: Height above the ellipsoid in meters

    Returns:
        ECEF position in kilometers
    """
    lat = math.radians(latitude_deg)
    lon = math.radians(longitude_deg)
    sin_lat, cos_lat = math.sin(lat), math.cos(lat)

    n = WGS84_A_M / math.sqrt(1.0 - WGS84_E2 * sin_lat * sin_lat)
    x = (n + height_m) * cos_lat * math.cos(lon)
    y = (n + height_m) * cos_lat * math.sin(lon)
    z = (n * (1.0 - WGS84_E2) + height_m) * sin_lat
    return Vector3(x / 1000.0, y / 1000.0, z / 1000.0)


def enu_basis(latitude_deg: float, longitude_deg: float) -> np.ndarray:
    """Rows are the East, North and Up unit vectors expressed in ECEF."""
    lat = math.radians(latitude_deg)
    lon = math.radians(longitude_deg)
    sin_lat, cos_lat = math.sin(lat), math.cos(lat)
    sin_lon, cos_lon = math.sin(lon), math.cos(lon)
    return np.array([
        [-sin_lon, cos_lon, 0.0],
        [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat],
        [cos_lat * cos_lon, cos_lat * sin_lon, sin_lat],
    ])


def ecef_to_enu(
    rho: Vector3, latitude_deg: float, longitude_deg: float
) -> Tuple[float, float, float]:
    """Project an observer-to-target ECEF vector onto local East/North/Up (km)."""
    e, n, u = enu_basis(latitude_deg, longitude_deg) @ rho.to_array()
    return float(e), float(n), float(u)


def altaz_from_enu(east: float, north: float, up: float) -> AltAz:
    altitude = math.atan2(up, math.hypot(east, north))
    azimuth = normalize_rad_0_to_2pi(math.atan2(east, north))
    return AltAz(
        altitude_deg=math.degrees(altitude),
        azimuth_deg=normalize_deg_0_to_360(math.degrees(azimuth)),
    )


def altaz_from_geocentric(geocentric: Vector3, when: datetime, observer: Observer) -> AltAz:
    """
    Topocentric altitude/azimuth of a geocentric inertial vector.

    Args:
        geocentric: Earth-centred inertial vector to the body (km)
        when: UTC instant
        observer: Ground observer

    Returns:
        AltAz in degrees, azimuth in [0, 360)
    """
    target_ecef = eci_to_ecef(geocentric, when)
    observer_ecef = geodetic_to_ecef(
        observer.latitude_deg, observer.longitude_deg, observer.elevation_m
    )
    east, north, up = ecef_to_enu(
        target_ecef - observer_ecef, observer.latitude_deg, observer.longitude_deg
    )
    return altaz_from_enu(east, north, up)


def radec_from_eci(eci: Vector3) -> RaDec:
    """Right ascension in [0, 360) and declination; (0, 0) for the zero vector."""
    r = eci.norm()
    if r == 0.0:
        return RaDec(ra_deg=0.0, dec_deg=0.0)
    ra = normalize_rad_0_to_2pi(math.atan2(eci.y, eci.x))
    dec = math.asin(max(-1.0, min(1.0, eci.z / r)))
    return RaDec(ra_deg=math.degrees(ra), dec_deg=math.degrees(dec))
