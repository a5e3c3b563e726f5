"""
Sun position and darkness checks for ground observers.

The Sun is taken from the planetary ephemeris rather than a low-precision
analytic series, so it is consistent with the Earth position used to build
NEO geocentric vectors.
"""

from datetime import datetime

from .constants import SSB_ID, SUN_ID
from .ephemeris.kernel import Ephemeris, earth_relative_to_barycenter
from .frames import AltAz, altaz_from_geocentric
from .targets import Observer
from .timescales import DEFAULT_TIME_SCALES, TimeScaleConfig, et_seconds
from .vector import Vector3

# Sun altitude limits for the usual twilight definitions (degrees)
CIVIL_TWILIGHT_DEG = -6.0
NAUTICAL_TWILIGHT_DEG = -12.0
ASTRONOMICAL_TWILIGHT_DEG = -18.0


def sun_geocentric(
    ephemeris: Ephemeris,
    when: datetime,
    scales: TimeScaleConfig = DEFAULT_TIME_SCALES,
) -> Vector3:
    """
    Earth-to-Sun inertial vector in kilometers.

    Raises:
        EphemerisLookupError: If the kernel does not cover ``when``
    """
    et = et_seconds(when, scales)
    sun_ssb = ephemeris.position(SUN_ID, SSB_ID, et)
    return sun_ssb - earth_relative_to_barycenter(ephemeris, et)


def sun_altaz(
    ephemeris: Ephemeris,
    when: datetime,
    observer: Observer,
    scales: TimeScaleConfig = DEFAULT_TIME_SCALES,
) -> AltAz:
    """
    Topocentric altitude/azimuth of the Sun.

    Args:
        ephemeris: Planetary ephemeris
        when: UTC instant
        observer: Ground observer
        scales: Time-scale offsets

    Returns:
        AltAz in degrees
    """
    return altaz_from_geocentric(sun_geocentric(ephemeris, when, scales), when, observer)


def sun_altitude_deg(
    ephemeris: Ephemeris,
    when: datetime,
    observer: Observer,
    scales: TimeScaleConfig = DEFAULT_TIME_SCALES,
) -> float:
    return sun_altaz(ephemeris, when, observer, scales).altitude_deg


def sun_altitude_from_earth_sun(earth_sun: Vector3, when: datetime, observer: Observer) -> float:
    """
    Sun altitude from an already evaluated heliocentric Earth vector.

    The planner evaluates Earth wrt the Sun once per sample and derives both
    the Sun direction and the NEO geocentric vectors from it.
    """
    return altaz_from_geocentric(earth_sun.scale(-1.0), when, observer).altitude_deg


def is_dark_enough(sun_altitude: float, twilight_limit_deg: float = NAUTICAL_TWILIGHT_DEG) -> bool:
    """True when the Sun is at or below the twilight limit."""
    return sun_altitude <= twilight_limit_deg


def twilight_phase(sun_altitude: float) -> str:
    """Name of the sky phase for a Sun altitude."""
    if sun_altitude > 0.0:
        return "day"
    if sun_altitude > CIVIL_TWILIGHT_DEG:
        return "civil twilight"
    if sun_altitude > NAUTICAL_TWILIGHT_DEG:
        return "nautical twilight"
    if sun_altitude > ASTRONOMICAL_TWILIGHT_DEG:
        return "astronomical twilight"
    return "night"
