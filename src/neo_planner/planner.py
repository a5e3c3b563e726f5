"""
Visibility planning over a time horizon.

This module provides the VisibilityPlanner, which coordinates the Sun and
Earth lookups in the planetary ephemeris, NEO orbit propagation, the
topocentric frame pipeline and window tracking, and returns one ranked
result per target.
"""

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union
import logging
import time

from .ephemeris.kernel import Ephemeris, SpkEphemeris, earth_relative_to_sun
from .exceptions import EphemerisLookupError, UnsupportedOrbitError
from .frames import AltAz, altaz_from_geocentric
from .orbit import geocentric_from_earth_sun, geocentric_position, heliocentric_equatorial_position
from .parallel import TargetPool
from .pointing import TopocentricResult, cardinal_from_azimuth, pointing_hint, solve_topocentric
from .sunlight import sun_altitude_from_earth_sun
from .targets import NeoTarget, Observer
from .timescales import DEFAULT_TIME_SCALES, TimeScaleConfig, as_utc, et_seconds
from .visibility import (
    DEFAULT_MIN_ALTITUDE_DEG,
    DEFAULT_STEP_MINUTES,
    DEFAULT_TWILIGHT_LIMIT_DEG,
    TrackerState,
    VisibilityConfig,
    VisibilitySample,
    VisibilityWindow,
    advance,
    best_window,
    finish,
    sample_is_visible,
    rank_results,
    sample_times,
)
from .vector import Vector3

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_HOURS = 24.0
DEFAULT_MAX_TARGETS = 10


@dataclass(frozen=True)
class VisibilityRequest:
    """
    Parameters of one planning run.

    Attributes:
        horizon_hours: Length of the scan from the start instant
        step_minutes: Sampling cadence
        min_altitude_deg: Lowest usable target altitude
        twilight_limit_deg: Highest Sun altitude that still counts as dark
        max_targets: Only the first N targets are planned
    """

    horizon_hours: float = DEFAULT_HORIZON_HOURS
    step_minutes: int = DEFAULT_STEP_MINUTES
    min_altitude_deg: float = DEFAULT_MIN_ALTITUDE_DEG
    twilight_limit_deg: float = DEFAULT_TWILIGHT_LIMIT_DEG
    max_targets: int = DEFAULT_MAX_TARGETS

    def __post_init__(self) -> None:
        if not self.horizon_hours > 0:
            raise ValueError(f"horizon_hours must be > 0, got {self.horizon_hours}")
        if self.step_minutes < 1:
            raise ValueError(f"step_minutes must be >= 1, got {self.step_minutes}")
        if self.max_targets < 1:
            raise ValueError(f"max_targets must be >= 1, got {self.max_targets}")

    def visibility_config(self) -> VisibilityConfig:
        return VisibilityConfig(
            step_minutes=self.step_minutes,
            min_altitude_deg=self.min_altitude_deg,
            twilight_limit_deg=self.twilight_limit_deg,
        )


@dataclass(frozen=True)
class PlannedResult:
    """Best observing window and pointing for one target."""

    target: NeoTarget
    best_window: Optional[VisibilityWindow]
    best_start_local: Optional[datetime]
    best_end_local: Optional[datetime]
    peak_time_local: Optional[datetime]
    peak_altitude_deg: Optional[float]
    peak_azimuth_deg: Optional[float]
    peak_cardinal: Optional[str]
    pointing_hint: Optional[str]
    visible_window_count: int

    @property
    def name(self) -> str:
        return self.target.name

    @property
    def is_observable(self) -> bool:
        return self.best_window is not None

    @classmethod
    def from_windows(
        cls, target: NeoTarget, windows: Sequence[VisibilityWindow], zone: tzinfo
    ) -> "PlannedResult":
        """Pick the best window and express it in the observer's time zone."""
        best = best_window(windows)
        if best is None:
            return cls(
                target=target,
                best_window=None,
                best_start_local=None,
                best_end_local=None,
                peak_time_local=None,
                peak_altitude_deg=None,
                peak_azimuth_deg=None,
                peak_cardinal=None,
                pointing_hint=None,
                visible_window_count=len(windows),
            )
        return cls(
            target=target,
            best_window=best,
            best_start_local=best.start.astimezone(zone),
            best_end_local=best.end.astimezone(zone),
            peak_time_local=best.peak_time.astimezone(zone),
            peak_altitude_deg=best.peak_altitude_deg,
            peak_azimuth_deg=best.peak_azimuth_deg,
            peak_cardinal=cardinal_from_azimuth(best.peak_azimuth_deg),
            pointing_hint=pointing_hint(best.peak_altitude_deg, best.peak_azimuth_deg),
            visible_window_count=len(windows),
        )

    def to_dict(self) -> Dict[str, Any]:
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value is not None else None

        return {
            "id": self.target.id,
            "name": self.target.name,
            "is_hazardous": self.target.is_hazardous,
            "h_magnitude": self.target.h_magnitude,
            "best_start_local": iso(self.best_start_local),
            "best_end_local": iso(self.best_end_local),
            "peak_time_local": iso(self.peak_time_local),
            "peak_altitude_deg": (
                round(self.peak_altitude_deg, 2) if self.peak_altitude_deg is not None else None
            ),
            "peak_azimuth_deg": (
                round(self.peak_azimuth_deg, 2) if self.peak_azimuth_deg is not None else None
            ),
            "peak_cardinal": self.peak_cardinal,
            "pointing_hint": self.pointing_hint,
            "visible_window_count": self.visible_window_count,
        }


class VisibilityPlanner:
    """
    Scans a time horizon and finds when each NEO is observable.

    For every sample time the Sun altitude and the heliocentric Earth are
    computed once; each target is then propagated and converted to alt/az.
    Lookup or propagation failures mark the affected sample as not visible
    instead of aborting the run.
    """

    def __init__(
        self,
        ephemeris: Ephemeris,
        time_scales: TimeScaleConfig = DEFAULT_TIME_SCALES,
        max_workers: Optional[int] = None,
    ) -> None:
        """
        Args:
            ephemeris: Planetary ephemeris (Sun, Earth-Moon barycenter, Earth)
            time_scales: UTC to TT/TDB offsets
            max_workers: Threads for the per-target loop (None or 1 = serial)
        """
        self.ephemeris = ephemeris
        self.time_scales = time_scales
        self.max_workers = max_workers

    def plan(
        self,
        observer: Observer,
        targets: Iterable[NeoTarget],
        request: Optional[VisibilityRequest] = None,
        start: Optional[datetime] = None,
    ) -> List[PlannedResult]:
        """
        Plan visibility for the first ``request.max_targets`` targets.

        Args:
            observer: Ground observer
            targets: Candidate NEOs, in priority order
            request: Scan parameters (defaults if None)
            start: First sample instant (now if None)

        Returns:
            One PlannedResult per planned target, highest peak first
        """
        request = request or VisibilityRequest()
        start_utc = as_utc(start) if start is not None else datetime.now(timezone.utc)
        candidates = list(targets)[:request.max_targets]
        config = request.visibility_config()
        times = sample_times(start_utc, request.horizon_hours, request.step_minutes)

        logger.info(
            f"Planning {len(candidates)} targets from {start_utc.isoformat()} over "
            f"{request.horizon_hours}h ({len(times)} samples, step {request.step_minutes} min)"
        )
        started = time.time()

        states = [TrackerState() for _ in candidates]
        with TargetPool(self.max_workers, len(candidates)) as pool:
            for t in times:
                try:
                    earth_sun = earth_relative_to_sun(
                        self.ephemeris, et_seconds(t, self.time_scales)
                    )
                except EphemerisLookupError as e:
                    logger.debug(f"Sample {t.isoformat()} not visible for any target: {e}")
                    states = [advance(state, t, False) for state in states]
                    continue
                sun_alt = sun_altitude_from_earth_sun(earth_sun, t, observer)

                observations = pool.map(
                    lambda target: self._observe(target, t, observer, earth_sun), candidates
                )
                for i, altaz in enumerate(observations):
                    if altaz is None:
                        states[i] = advance(states[i], t, False)
                        continue
                    sample = VisibilitySample(t, altaz.altitude_deg, altaz.azimuth_deg, sun_alt)
                    visible = sample_is_visible(sample, config)
                    states[i] = advance(
                        states[i], t, visible, altaz.altitude_deg, altaz.azimuth_deg
                    )

        zone = observer.zone
        results = [
            PlannedResult.from_windows(target, finish(state), zone)
            for target, state in zip(candidates, states)
        ]
        ranked = rank_results(results)

        observable = sum(1 for r in ranked if r.is_observable)
        logger.info(
            f"Planning finished in {time.time() - started:.2f}s: "
            f"{observable}/{len(ranked)} targets observable"
        )
        return ranked

    def _observe(
        self, target: NeoTarget, when: datetime, observer: Observer, earth_sun: Vector3
    ) -> Optional[AltAz]:
        try:
            heliocentric = heliocentric_equatorial_position(target.elements, when, self.time_scales)
        except (UnsupportedOrbitError, EphemerisLookupError) as e:
            logger.debug(f"{target.name} not visible at {when.isoformat()}: {e}")
            return None
        if heliocentric is None:
            return None
        geocentric = geocentric_from_earth_sun(heliocentric, earth_sun)
        return altaz_from_geocentric(geocentric, when, observer)

    def point(
        self, observer: Observer, targets: Iterable[NeoTarget], when: Optional[datetime] = None
    ) -> List[Tuple[NeoTarget, Optional[TopocentricResult]]]:
        """
        Instantaneous pointing for each target.

        Targets that cannot be propagated map to None.

        Raises:
            EphemerisLookupError: If the kernel does not cover ``when``
        """
        when_utc = as_utc(when) if when is not None else datetime.now(timezone.utc)
        pointed: List[Tuple[NeoTarget, Optional[TopocentricResult]]] = []
        for target in targets:
            try:
                geocentric = geocentric_position(
                    self.ephemeris, target.elements, when_utc, self.time_scales
                )
            except UnsupportedOrbitError as e:
                logger.warning(f"Cannot propagate {target.name}: {e}")
                geocentric = None
            result = solve_topocentric(geocentric, when_utc, observer) if geocentric is not None else None
            pointed.append((target, result))
        return pointed


def plan_visibility(
    kernel_path: Union[str, Path],
    observer: Observer,
    targets: Iterable[NeoTarget],
    request: Optional[VisibilityRequest] = None,
    start: Optional[datetime] = None,
    time_scales: TimeScaleConfig = DEFAULT_TIME_SCALES,
    max_workers: Optional[int] = None,
) -> List[PlannedResult]:
    """
    Open a kernel, plan, and close the kernel again.

    Raises:
        FileNotFoundError: If the kernel file does not exist
        FormatError: If the kernel is malformed
    """
    with SpkEphemeris.open(kernel_path) as ephemeris:
        planner = VisibilityPlanner(ephemeris, time_scales=time_scales, max_workers=max_workers)
        return planner.plan(observer, targets, request=request, start=start)
