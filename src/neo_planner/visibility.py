"""
Visibility classification and window grouping.

A sample is visible when the body is at or above the minimum altitude and
the Sun is at or below the twilight limit. Contiguous visible samples form a
window. Tracking is a pure state machine: :func:`advance` consumes one
sample and returns the next TrackerState, :func:`finish` closes whatever is
still open at the end of the scan.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_STEP_MINUTES = 30
DEFAULT_MIN_ALTITUDE_DEG = 20.0
DEFAULT_TWILIGHT_LIMIT_DEG = -12.0


@dataclass(frozen=True)
class VisibilityConfig:
    """Sampling cadence and visibility thresholds."""

    step_minutes: int = DEFAULT_STEP_MINUTES
    min_altitude_deg: float = DEFAULT_MIN_ALTITUDE_DEG
    twilight_limit_deg: float = DEFAULT_TWILIGHT_LIMIT_DEG

    def __post_init__(self) -> None:
        if self.step_minutes < 1:
            raise ValueError(f"step_minutes must be >= 1, got {self.step_minutes}")


@dataclass(frozen=True)
class VisibilitySample:
    """Body and Sun altitude at one sample time."""

    time: datetime
    target_altitude_deg: float
    target_azimuth_deg: float
    sun_altitude_deg: float

    @property
    def is_finite(self) -> bool:
        return (
            math.isfinite(self.target_altitude_deg)
            and math.isfinite(self.target_azimuth_deg)
            and math.isfinite(self.sun_altitude_deg)
        )


@dataclass(frozen=True)
class VisibilityWindow:
    """
    A run of contiguous visible samples.

    ``end`` is the time of the sample that closed the window: the first
    non-visible sample, or the peak time when the scan ended with the
    window still open. ``last_visible`` is the last visible sample's time.
    """

    start: datetime
    end: datetime
    peak_time: datetime
    peak_altitude_deg: float
    peak_azimuth_deg: float
    last_visible: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "peak_time": self.peak_time.isoformat(),
            "peak_altitude_deg": round(self.peak_altitude_deg, 2),
            "peak_azimuth_deg": round(self.peak_azimuth_deg, 2),
            "last_visible": self.last_visible.isoformat(),
            "duration_seconds": self.duration.total_seconds(),
        }


@dataclass(frozen=True)
class OpenWindow:
    """A window that has started but not yet closed."""

    start: datetime
    peak_time: datetime
    peak_altitude_deg: float
    peak_azimuth_deg: float
    last_visible: datetime

    def close(self, end: datetime) -> VisibilityWindow:
        return VisibilityWindow(
            start=self.start,
            end=end,
            peak_time=self.peak_time,
            peak_altitude_deg=self.peak_altitude_deg,
            peak_azimuth_deg=self.peak_azimuth_deg,
            last_visible=self.last_visible,
        )


@dataclass(frozen=True)
class TrackerState:
    """Per-target scan state; ``open_window`` is None between windows."""

    open_window: Optional[OpenWindow] = None
    windows: Tuple[VisibilityWindow, ...] = field(default_factory=tuple)


def is_visible(
    target_altitude_deg: float,
    sun_altitude_deg: float,
    min_altitude_deg: float,
    twilight_limit_deg: float,
) -> bool:
    """Body high enough and sky dark enough. NaN inputs are never visible."""
    return target_altitude_deg >= min_altitude_deg and sun_altitude_deg <= twilight_limit_deg


def sample_is_visible(sample: VisibilitySample, config: VisibilityConfig) -> bool:
    return sample.is_finite and is_visible(
        sample.target_altitude_deg,
        sample.sun_altitude_deg,
        config.min_altitude_deg,
        config.twilight_limit_deg,
    )


def sample_times(start: datetime, hours: float, step_minutes: int) -> List[datetime]:
    """
    Sample instants from ``start`` to ``start + hours`` inclusive.

    The last sample falls before the end when the span is not a multiple
    of the step.

    Raises:
        ValueError: If hours <= 0 or step_minutes < 1
    """
    if not hours > 0:
        raise ValueError(f"hours must be > 0, got {hours}")
    if step_minutes < 1:
        raise ValueError(f"step_minutes must be >= 1, got {step_minutes}")

    end = start + timedelta(hours=hours)
    step = timedelta(minutes=step_minutes)
    times = []
    t = start
    while t <= end:
        times.append(t)
        t += step
    return times


def advance(
    state: TrackerState,
    time: datetime,
    visible: bool,
    altitude_deg: float = math.nan,
    azimuth_deg: float = math.nan,
) -> TrackerState:
    """
    Feed one sample into the tracker.

    Args:
        state: Current state
        time: Sample time
        visible: Visibility verdict for the sample
        altitude_deg: Body altitude (only used when visible)
        azimuth_deg: Body azimuth (only used when visible)

    Returns:
        The next state; ``state`` itself is not modified
    """
    if visible and not (math.isfinite(altitude_deg) and math.isfinite(azimuth_deg)):
        visible = False

    current = state.open_window
    if visible:
        if current is None:
            opened = OpenWindow(
                start=time,
                peak_time=time,
                peak_altitude_deg=altitude_deg,
                peak_azimuth_deg=azimuth_deg,
                last_visible=time,
            )
            return replace(state, open_window=opened)
        if altitude_deg > current.peak_altitude_deg:
            updated = replace(
                current,
                peak_time=time,
                peak_altitude_deg=altitude_deg,
                peak_azimuth_deg=azimuth_deg,
                last_visible=time,
            )
        else:
            updated = replace(current, last_visible=time)
        return replace(state, open_window=updated)

    if current is None:
        return state
    return TrackerState(open_window=None, windows=state.windows + (current.close(time),))


def finish(state: TrackerState) -> List[VisibilityWindow]:
    """Close any open window at its peak time and return all windows in order."""
    windows = list(state.windows)
    if state.open_window is not None:
        windows.append(state.open_window.close(state.open_window.peak_time))
    return windows


def group_windows(
    samples: Sequence[VisibilitySample], config: VisibilityConfig
) -> List[VisibilityWindow]:
    """Group contiguous visible samples (by list position) into windows."""
    state = TrackerState()
    for sample in samples:
        state = advance(
            state,
            sample.time,
            sample_is_visible(sample, config),
            sample.target_altitude_deg,
            sample.target_azimuth_deg,
        )
    return finish(state)


def best_window(windows: Iterable[VisibilityWindow]) -> Optional[VisibilityWindow]:
    """Highest peak altitude; ties go to the earliest peak time."""
    best: Optional[VisibilityWindow] = None
    for window in windows:
        if best is None:
            best = window
        elif window.peak_altitude_deg > best.peak_altitude_deg:
            best = window
        elif (window.peak_altitude_deg == best.peak_altitude_deg
              and window.peak_time < best.peak_time):
            best = window
    return best


R = TypeVar("R")


def rank_results(results: Iterable[R]) -> List[R]:
    """
    Order planning results for display.

    Items need ``peak_altitude_deg`` (None when no window) and ``name``.
    Highest peak first, no-window results last, ties by name.
    """
    def key(result: Any) -> Tuple[int, float, str]:
        peak = result.peak_altitude_deg
        if peak is None:
            return (1, 0.0, result.name)
        return (0, -peak, result.name)

    return sorted(results, key=key)
