"""
Tests for Keplerian propagation of NEO orbits.
"""

import io
import math
from datetime import timedelta

import pytest

from conftest import AU_KM, planetary_builder
from neo_planner.constants import GAUSSIAN_K, OBLIQUITY_J2000_DEG
from neo_planner.ephemeris.kernel import SpkEphemeris
from neo_planner.exceptions import UnsupportedOrbitError
from neo_planner.orbit import (
    OrbitElements,
    au_to_km,
    ecliptic_to_equatorial,
    geocentric_from_earth_sun,
    geocentric_position,
    heliocentric_equatorial_position,
    mean_motion_rad_per_day,
    perifocal_position_au,
    perifocal_to_ecliptic,
    solve_kepler,
)
from neo_planner.timescales import jd_tdb
from neo_planner.vector import Vector3

EPS = math.radians(OBLIQUITY_J2000_DEG)


def _elements(**overrides) -> OrbitElements:
    values = dict(
        epoch_jd=2461000.5,
        eccentricity=0.0,
        semi_major_axis_au=1.0,
        inclination_deg=0.0,
        ascending_node_deg=0.0,
        arg_periapsis_deg=0.0,
        mean_anomaly_deg=0.0,
    )
    values.update(overrides)
    return OrbitElements(**values)


class TestOrbitElements:
    """Tests for OrbitElements validation and serialization."""

    def test_negative_eccentricity_rejected(self) -> None:
        with pytest.raises(ValueError, match="Eccentricity"):
            _elements(eccentricity=-0.1)

    def test_nan_eccentricity_rejected(self) -> None:
        with pytest.raises(ValueError):
            _elements(eccentricity=float("nan"))

    def test_is_elliptical(self) -> None:
        assert _elements(eccentricity=0.99).is_elliptical
        assert not _elements(eccentricity=1.0).is_elliptical

    def test_dict_roundtrip(self, sample_neo_elements: OrbitElements) -> None:
        data = sample_neo_elements.to_dict()
        assert data["semi_major_axis_au"] == 0.9224
        assert OrbitElements.from_dict(data) == sample_neo_elements

    def test_from_dict_without_mean_motion(self) -> None:
        data = _elements().to_dict()
        del data["mean_motion_deg_per_day"]
        assert OrbitElements.from_dict(data).mean_motion_deg_per_day is None


class TestMeanMotion:
    """Tests for supplied and derived mean motion."""

    def test_supplied(self) -> None:
        el = _elements(mean_motion_deg_per_day=1.0)
        assert mean_motion_rad_per_day(el) == pytest.approx(math.radians(1.0))

    def test_derived_from_semi_major_axis(self) -> None:
        assert mean_motion_rad_per_day(_elements()) == pytest.approx(GAUSSIAN_K)
        assert mean_motion_rad_per_day(_elements(semi_major_axis_au=4.0)) == pytest.approx(
            GAUSSIAN_K / 8.0
        )

    @pytest.mark.parametrize("bad", [0.0, -1.0, float("nan"), float("inf")])
    def test_unusable_supplied_value_falls_back(self, bad: float) -> None:
        el = _elements(mean_motion_deg_per_day=bad)
        assert mean_motion_rad_per_day(el) == pytest.approx(GAUSSIAN_K)

    def test_invalid_semi_major_axis(self) -> None:
        with pytest.raises(UnsupportedOrbitError):
            mean_motion_rad_per_day(_elements(semi_major_axis_au=0.0))


class TestSolveKepler:
    """Tests for the Newton-Raphson Kepler solver."""

    def test_circular(self) -> None:
        assert solve_kepler(1.234, 0.0) == pytest.approx(1.234)

    @pytest.mark.parametrize("e", [0.1, 0.5, 0.79, 0.8, 0.95, 0.999])
    def test_satisfies_kepler_equation(self, e: float) -> None:
        m = 0.7
        big_e = solve_kepler(m, e)
        assert big_e - e * math.sin(big_e) == pytest.approx(m, abs=1e-10)

    @pytest.mark.parametrize("e", [i * 0.99 / 33 for i in range(34)])
    def test_kepler_residual_over_full_mean_anomaly_range(self, e: float) -> None:
        mean_anomalies = [2 * math.pi * k / 90 for k in range(90)]
        mean_anomalies += [1e-12, 1e-6, 2 * math.pi - 1e-6, math.nextafter(2 * math.pi, 0.0)]
        for m in mean_anomalies:
            big_e = solve_kepler(m, e)
            assert abs(big_e - e * math.sin(big_e) - m) < 1e-9, (e, m)

    @pytest.mark.parametrize("e", [0.8, 0.9, 0.99])
    def test_high_eccentricity_near_periapsis(self, e: float) -> None:
        # seeded from pi, Newton has to travel back to E near 0 or 2*pi
        for m in (1e-9, 0.01, 2 * math.pi - 0.01):
            big_e = solve_kepler(m, e)
            assert abs(big_e - e * math.sin(big_e) - m) < 1e-9

    def test_mean_anomaly_is_normalized(self) -> None:
        assert solve_kepler(-1.0, 0.0) == pytest.approx(2 * math.pi - 1.0)
        assert solve_kepler(2 * math.pi + 0.5, 0.0) == pytest.approx(0.5)

    def test_non_elliptical(self) -> None:
        assert solve_kepler(0.5, 1.0) is None
        assert solve_kepler(0.5, 2.3) is None


class TestFrameRotations:
    """Tests for the perifocal -> ecliptic -> equatorial chain."""

    def test_perifocal_at_quarter_anomaly(self) -> None:
        assert perifocal_position_au(1.0, 0.0, math.pi / 2) == pytest.approx((0.0, 1.0, 0.0))

    def test_perifocal_at_perihelion(self) -> None:
        assert perifocal_position_au(2.0, 0.5, 0.0) == pytest.approx((1.0, 0.0, 0.0))

    def test_identity_when_angles_zero(self) -> None:
        assert perifocal_to_ecliptic((1.0, 2.0, 3.0), 0.0, 0.0, 0.0) == pytest.approx(
            (1.0, 2.0, 3.0)
        )

    def test_node_rotates_about_z(self) -> None:
        assert perifocal_to_ecliptic((1.0, 0.0, 0.0), math.pi / 2, 0.0, 0.0) == pytest.approx(
            (0.0, 1.0, 0.0), abs=1e-15
        )

    def test_inclination_lifts_out_of_plane(self) -> None:
        # argp = 90 puts the body at the ascending node + 90, highest above the ecliptic
        r = perifocal_to_ecliptic((1.0, 0.0, 0.0), 0.0, math.pi / 2, math.pi / 2)
        assert r == pytest.approx((0.0, 0.0, 1.0), abs=1e-15)

    def test_rotation_preserves_length(self) -> None:
        r = perifocal_to_ecliptic((0.3, -1.1, 0.0), 1.0, 0.4, 2.2)
        assert math.hypot(*r) == pytest.approx(math.hypot(0.3, -1.1))

    def test_ecliptic_to_equatorial(self) -> None:
        assert ecliptic_to_equatorial((1.0, 0.0, 0.0)) == pytest.approx((1.0, 0.0, 0.0))
        assert ecliptic_to_equatorial((0.0, 1.0, 0.0)) == pytest.approx(
            (0.0, math.cos(EPS), math.sin(EPS))
        )

    def test_au_to_km(self) -> None:
        assert au_to_km((1.0, 0.5, 0.0)) == Vector3(AU_KM, AU_KM * 0.5, 0.0)


class TestHeliocentricPosition:
    """Tests for propagation to an instant."""

    def test_at_epoch(self, start_time) -> None:
        el = _elements(epoch_jd=jd_tdb(start_time))
        pos = heliocentric_equatorial_position(el, start_time)
        assert pos.as_tuple() == pytest.approx((AU_KM, 0.0, 0.0), abs=1.0)

    def test_quarter_orbit_later(self, start_time) -> None:
        el = _elements(epoch_jd=jd_tdb(start_time), mean_motion_deg_per_day=90.0)
        pos = heliocentric_equatorial_position(el, start_time + timedelta(days=1))
        expected = (0.0, AU_KM * math.cos(EPS), AU_KM * math.sin(EPS))
        assert pos.as_tuple() == pytest.approx(expected, abs=50.0)

    def test_distance_within_perihelion_and_aphelion(
        self, sample_neo_elements: OrbitElements, start_time
    ) -> None:
        pos = heliocentric_equatorial_position(sample_neo_elements, start_time)
        a, e = sample_neo_elements.semi_major_axis_au, sample_neo_elements.eccentricity
        r_au = pos.norm() / AU_KM
        assert a * (1 - e) - 1e-9 <= r_au <= a * (1 + e) + 1e-9

    def test_hyperbolic_returns_none(self, hyperbolic_elements, start_time) -> None:
        assert heliocentric_equatorial_position(hyperbolic_elements, start_time) is None


class TestGeocentricPosition:
    """Tests for subtracting the heliocentric Earth."""

    def test_geocentric_from_earth_sun(self) -> None:
        helio = Vector3(3.0, 2.0, 1.0)
        earth = Vector3(1.0, 1.0, 1.0)
        assert geocentric_from_earth_sun(helio, earth) == Vector3(2.0, 1.0, 0.0)

    def test_with_kernel(self, opposition_elements, start_time) -> None:
        eph = SpkEphemeris(io.BytesIO(planetary_builder().build()))
        geo = geocentric_position(eph, opposition_elements, start_time)
        # body at 2 AU, Earth at 1 AU - 4670 km, both on +X
        assert geo.as_tuple() == pytest.approx((AU_KM + 4670.0, 0.0, 0.0), abs=1.0)

    def test_hyperbolic_with_kernel(self, hyperbolic_elements, start_time) -> None:
        eph = SpkEphemeris(io.BytesIO(planetary_builder().build()))
        assert geocentric_position(eph, hyperbolic_elements, start_time) is None
