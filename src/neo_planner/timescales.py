"""
Julian dates, time-scale conversions and sidereal time.

User-facing instants are timezone-aware UTC datetimes (naive datetimes are
taken to be UTC). Earth rotation uses JD(UTC); the ephemeris is evaluated in
seconds past J2000 on an approximate TDB scale.

The UTC->TT offset comes from a TimeScaleConfig value that is passed into
each conversion instead of living in module state.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .angles import normalize_deg_0_to_360, normalize_rad_0_to_2pi
from .constants import (
    DAYS_PER_JULIAN_CENTURY,
    DEFAULT_TAI_MINUS_UTC_SECONDS,
    JD_J2000,
    JD_UNIX_EPOCH,
    SECONDS_PER_DAY,
    TT_MINUS_TAI_SECONDS,
)

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class TimeScaleConfig:
    """
    Offsets used to move from UTC to the dynamical time scales.

    TAI-UTC is a constant leap-second count. 37 s has been valid since
    2017-01-01; older or future epochs need a different value.
    """

    tai_minus_utc_seconds: float = DEFAULT_TAI_MINUS_UTC_SECONDS

    @property
    def tt_minus_utc_seconds(self) -> float:
        return self.tai_minus_utc_seconds + TT_MINUS_TAI_SECONDS

    def jd_tt_from_jd_utc(self, jd_utc: float) -> float:
        return jd_utc + self.tt_minus_utc_seconds / SECONDS_PER_DAY

    def jd_tdb_from_jd_utc(self, jd_utc: float) -> float:
        return jd_tdb_from_jd_tt(self.jd_tt_from_jd_utc(jd_utc))


DEFAULT_TIME_SCALES = TimeScaleConfig()


def as_utc(when: datetime) -> datetime:
    """Return ``when`` as an aware UTC datetime (naive input is treated as UTC)."""
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def jd_utc(when: datetime) -> float:
    """
    Julian Date (UTC) of an instant.

    Uses JD = 2440587.5 + unix_seconds / 86400; leap seconds are ignored at
    this layer.

    Args:
        when: Instant (aware, or naive UTC)

    Returns:
        Julian Date on the UTC scale
    """
    delta = as_utc(when) - _UNIX_EPOCH
    # integer arithmetic on the timedelta keeps microsecond precision
    seconds = delta.days * SECONDS_PER_DAY + delta.seconds + delta.microseconds * 1e-6
    return JD_UNIX_EPOCH + seconds / SECONDS_PER_DAY


def instant_from_jd_utc(jd: float) -> datetime:
    """
    Inverse of :func:`jd_utc`.

    Args:
        jd: Julian Date on the UTC scale

    Returns:
        Aware UTC datetime, rounded to the microsecond
    """
    total_seconds = (jd - JD_UNIX_EPOCH) * SECONDS_PER_DAY
    whole = math.floor(total_seconds)
    micros = int(round((total_seconds - whole) * 1e6))
    return _UNIX_EPOCH + timedelta(seconds=whole, microseconds=micros)


def jd_tdb_from_jd_tt(jd_tt: float) -> float:
    """
    Approximate JD(TDB) from JD(TT).

    TDB - TT ~= 0.001657 sin(g) + 0.000022 sin(2g) seconds, with g the
    Earth's mean anomaly. Adequate for pointing-level work.
    """
    t = (jd_tt - JD_J2000) / DAYS_PER_JULIAN_CENTURY
    g = math.radians(math.fmod(357.5277233 + 35999.05034 * t, 360.0))
    tdb_minus_tt = 0.001657 * math.sin(g) + 0.000022 * math.sin(2.0 * g)
    return jd_tt + tdb_minus_tt / SECONDS_PER_DAY


def jd_tdb(when: datetime, scales: TimeScaleConfig = DEFAULT_TIME_SCALES) -> float:
    return scales.jd_tdb_from_jd_utc(jd_utc(when))


def seconds_since_j2000_tt(when: datetime, scales: TimeScaleConfig = DEFAULT_TIME_SCALES) -> float:
    return (scales.jd_tt_from_jd_utc(jd_utc(when)) - JD_J2000) * SECONDS_PER_DAY


def et_seconds(when: datetime, scales: TimeScaleConfig = DEFAULT_TIME_SCALES) -> float:
    """
    Ephemeris time: seconds past J2000 on the (approximate) TDB scale.

    Args:
        when: UTC instant
        scales: Time-scale offsets to apply

    Returns:
        Seconds past 2000-01-01 12:00 TDB
    """
    return (jd_tdb(when, scales) - JD_J2000) * SECONDS_PER_DAY


def gmst_rad(jd: float) -> float:
    """
    Greenwich Mean Sidereal Time in radians, in [0, 2*pi).

    IAU 1982 style polynomial:
        GMST(deg) = 280.46061837 + 360.98564736629 d + 0.000387933 T^2 - T^3 / 38710000
    with d = JD - 2451545.0 and T = d / 36525.

    Args:
        jd: Julian Date (UTC)
    """
    d = jd - JD_J2000
    t = d / DAYS_PER_JULIAN_CENTURY
    gmst_deg = (
        280.46061837
        + 360.98564736629 * d
        + 0.000387933 * t * t
        - (t * t * t) / 38710000.0
    )
    theta = math.radians(normalize_deg_0_to_360(gmst_deg))
    return theta if theta < 2.0 * math.pi else 0.0


def lst_rad(jd: float, longitude_deg: float) -> float:
    """Local sidereal time (radians) for an east-positive longitude."""
    return normalize_rad_0_to_2pi(gmst_rad(jd) + math.radians(longitude_deg))
