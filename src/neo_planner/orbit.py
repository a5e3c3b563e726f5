"""
Keplerian orbit propagation for small bodies.

This module turns classical heliocentric orbital elements (as published by
the NeoWs catalog) into inertial position vectors: Kepler's equation for the
eccentric anomaly, the perifocal position, rotation to the ecliptic and
equatorial J2000 frames, and finally subtraction of the Earth's heliocentric
position taken from the planetary ephemeris.

Only elliptical orbits are supported; for e >= 1 the solver and the
propagator return None instead of raising.
"""

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .angles import deg_to_rad, normalize_rad_0_to_2pi
from .constants import AU_KM, GAUSSIAN_K, OBLIQUITY_J2000_DEG
from .ephemeris.kernel import Ephemeris, earth_relative_to_sun
from .exceptions import UnsupportedOrbitError
from .timescales import DEFAULT_TIME_SCALES, TimeScaleConfig, et_seconds, jd_tdb
from .vector import Vector3

logger = logging.getLogger(__name__)

KEPLER_MAX_ITERATIONS = 30
KEPLER_TOLERANCE_RAD = 1e-12

AuVector = Tuple[float, float, float]


@dataclass(frozen=True)
class OrbitElements:
    """
    Osculating heliocentric elements referred to the ecliptic J2000.

    Attributes:
        epoch_jd: Epoch of osculation (Julian Date, TDB)
        eccentricity: e >= 0; e >= 1 cannot be propagated
        semi_major_axis_au: a in AU
        inclination_deg: i
        ascending_node_deg: longitude of the ascending node
        arg_periapsis_deg: argument of perihelion
        mean_anomaly_deg: M at epoch
        mean_motion_deg_per_day: Optional n; derived from a when missing
    """

    epoch_jd: float
    eccentricity: float
    semi_major_axis_au: float
    inclination_deg: float
    ascending_node_deg: float
    arg_periapsis_deg: float
    mean_anomaly_deg: float
    mean_motion_deg_per_day: Optional[float] = None

    def __post_init__(self) -> None:
        if not self.eccentricity >= 0.0:
            raise ValueError(f"Eccentricity must be >= 0, got {self.eccentricity}")

    @property
    def is_elliptical(self) -> bool:
        return self.eccentricity < 1.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrbitElements":
        mean_motion = data.get("mean_motion_deg_per_day")
        return cls(
            epoch_jd=float(data["epoch_jd"]),
            eccentricity=float(data["eccentricity"]),
            semi_major_axis_au=float(data["semi_major_axis_au"]),
            inclination_deg=float(data["inclination_deg"]),
            ascending_node_deg=float(data["ascending_node_deg"]),
            arg_periapsis_deg=float(data["arg_periapsis_deg"]),
            mean_anomaly_deg=float(data["mean_anomaly_deg"]),
            mean_motion_deg_per_day=float(mean_motion) if mean_motion is not None else None,
        )


def mean_motion_rad_per_day(elements: OrbitElements) -> float:
    """
    Mean motion in rad/day.

    The supplied mean motion wins when it is finite and positive; otherwise
    n = k / a^1.5 with the Gaussian gravitational constant.

    Raises:
        UnsupportedOrbitError: If n must be derived and a <= 0
    """
    supplied = elements.mean_motion_deg_per_day
    if supplied is not None and math.isfinite(supplied) and supplied > 0.0:
        return deg_to_rad(supplied)

    a = elements.semi_major_axis_au
    if not a > 0.0:
        raise UnsupportedOrbitError(f"Invalid semi-major axis a={a}")
    return GAUSSIAN_K / a ** 1.5


def solve_kepler(mean_anomaly_rad: float, eccentricity: float) -> Optional[float]:
    """
    Solve M = E - e sin E for the eccentric anomaly.

    Newton-Raphson from E = M (or pi for e >= 0.8), at most 30 steps,
    stopping once the correction drops below 1e-12 rad. The last iterate is
    returned even if that tolerance was never reached.

    Args:
        mean_anomaly_rad: Mean anomaly, any range
        eccentricity: Orbit eccentricity

    Returns:
        Eccentric anomaly in radians, or None if e >= 1
    """
    if eccentricity >= 1.0:
        return None

    m = normalize_rad_0_to_2pi(mean_anomaly_rad)
    e_anom = m if eccentricity < 0.8 else math.pi

    for _ in range(KEPLER_MAX_ITERATIONS):
        f = e_anom - eccentricity * math.sin(e_anom) - m
        fp = 1.0 - eccentricity * math.cos(e_anom)
        delta = -f / fp
        e_anom += delta
        if abs(delta) < KEPLER_TOLERANCE_RAD:
            break
    return e_anom


def perifocal_position_au(a_au: float, eccentricity: float, eccentric_anomaly: float) -> AuVector:
    """Position in the orbital plane, x towards perihelion (AU)."""
    x = a_au * (math.cos(eccentric_anomaly) - eccentricity)
    y = a_au * math.sqrt(1.0 - eccentricity * eccentricity) * math.sin(eccentric_anomaly)
    return (x, y, 0.0)


def perifocal_to_ecliptic(
    r_pf: AuVector, node_rad: float, inclination_rad: float, arg_periapsis_rad: float
) -> AuVector:
    """Rotate perifocal to ecliptic J2000: r = Rz(node) Rx(i) Rz(argp) r_pf."""
    c_o, s_o = math.cos(node_rad), math.sin(node_rad)
    c_i, s_i = math.cos(inclination_rad), math.sin(inclination_rad)
    c_w, s_w = math.cos(arg_periapsis_rad), math.sin(arg_periapsis_rad)

    m11 = c_o * c_w - s_o * s_w * c_i
    m12 = -c_o * s_w - s_o * c_w * c_i
    m13 = s_o * s_i
    m21 = s_o * c_w + c_o * s_w * c_i
    m22 = -s_o * s_w + c_o * c_w * c_i
    m23 = -c_o * s_i
    m31 = s_w * s_i
    m32 = c_w * s_i
    m33 = c_i

    x, y, z = r_pf
    return (
        m11 * x + m12 * y + m13 * z,
        m21 * x + m22 * y + m23 * z,
        m31 * x + m32 * y + m33 * z,
    )


def ecliptic_to_equatorial(r_ecl: AuVector) -> AuVector:
    """Rotate ecliptic J2000 to equatorial J2000 about +X by the mean obliquity."""
    eps = deg_to_rad(OBLIQUITY_J2000_DEG)
    c, s = math.cos(eps), math.sin(eps)
    x, y, z = r_ecl
    return (x, c * y - s * z, s * y + c * z)


def au_to_km(r_au: AuVector) -> Vector3:
    return Vector3(r_au[0] * AU_KM, r_au[1] * AU_KM, r_au[2] * AU_KM)


def heliocentric_equatorial_position(
    elements: OrbitElements,
    when: datetime,
    scales: TimeScaleConfig = DEFAULT_TIME_SCALES,
) -> Optional[Vector3]:
    """
    Heliocentric position in the equatorial J2000 frame.

    Args:
        elements: Orbital elements
        when: UTC instant
        scales: Time-scale offsets for UTC -> TDB

    Returns:
        Position in km, or None for a non-elliptical orbit

    Raises:
        UnsupportedOrbitError: If the mean motion cannot be derived
    """
    if not elements.is_elliptical:
        return None

    dt_days = jd_tdb(when, scales) - elements.epoch_jd
    n = mean_motion_rad_per_day(elements)
    mean_anomaly = deg_to_rad(elements.mean_anomaly_deg) + n * dt_days

    e_anom = solve_kepler(mean_anomaly, elements.eccentricity)
    if e_anom is None:
        return None

    r_pf = perifocal_position_au(elements.semi_major_axis_au, elements.eccentricity, e_anom)
    r_ecl = perifocal_to_ecliptic(
        r_pf,
        deg_to_rad(elements.ascending_node_deg),
        deg_to_rad(elements.inclination_deg),
        deg_to_rad(elements.arg_periapsis_deg),
    )
    return au_to_km(ecliptic_to_equatorial(r_ecl))


def geocentric_from_earth_sun(heliocentric: Vector3, earth_sun: Vector3) -> Vector3:
    """Earth-centred vector from a heliocentric one and the heliocentric Earth."""
    return heliocentric - earth_sun


def geocentric_position(
    ephemeris: Ephemeris,
    elements: OrbitElements,
    when: datetime,
    scales: TimeScaleConfig = DEFAULT_TIME_SCALES,
) -> Optional[Vector3]:
    """
    Geocentric inertial position of a small body (km).

    Returns:
        None when the orbit cannot be propagated (e >= 1)

    Raises:
        EphemerisLookupError: If the kernel does not cover ``when``
        UnsupportedOrbitError: If the mean motion cannot be derived
    """
    heliocentric = heliocentric_equatorial_position(elements, when, scales)
    if heliocentric is None:
        return None
    earth_sun = earth_relative_to_sun(ephemeris, et_seconds(when, scales))
    return geocentric_from_earth_sun(heliocentric, earth_sun)
